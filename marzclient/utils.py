import math
import random
import secrets
import string
import time
import uuid

DAY_SECONDS = 24 * 60 * 60
GB = 1024 ** 3


def gb_to_bytes(volume) -> int:
    return int(float(volume or 0) * GB)


def bytes_to_gb(value) -> float:
    return round(float(value or 0) / GB, 2)


def format_server_url(url: str | None) -> str:
    """Return url with a trailing slash; empty input stays empty."""
    if not url:
        return ''
    return url if url.endswith('/') else f"{url}/"


def remaining_days(expire, now: int) -> int:
    # expire == 0 means "never"; it still goes through the same formula
    return max(0, (int(expire or 0) - int(now)) // DAY_SECONDS)


def remaining_traffic(data_limit, used_traffic) -> float:
    return max(0.0, float(data_limit or 0) - float(used_traffic or 0))


def used_percent(data_limit, used_traffic) -> int:
    """Usage as a whole percentage, half rounded away from zero. Unlimited (0) users report 0."""
    limit = float(data_limit or 0)
    if limit <= 0:
        return 0
    return int(math.floor(float(used_traffic or 0) / limit * 100 + 0.5))


def with_usage_fields(user: dict, now: int | None = None) -> dict:
    if now is None:
        now = int(time.time())
    data = dict(user)
    data['remaining_days'] = remaining_days(data.get('expire'), now)
    data['remaining_traffic'] = remaining_traffic(data.get('data_limit'), data.get('used_traffic'))
    data['used_percent'] = used_percent(data.get('data_limit'), data.get('used_traffic'))
    return data


def random_string(length: int) -> str:
    return ''.join(random.choices(string.ascii_letters + string.digits, k=length))


def generate_user_id() -> str:
    return str(uuid.uuid4())


def generate_unique_name(prefix: str, total_length: int) -> str:
    """
    Build <prefix><unix microseconds><8 hex chars>.
    When too long, only the part after the prefix is cut; the prefix is never shortened.
    """
    micros = str(time.time_ns() // 1000)
    suffix = micros + secrets.token_hex(4)
    name = f"{prefix}{suffix}"
    if len(name) > total_length:
        name = prefix + suffix[:max(0, total_length - len(prefix))]
    return name
