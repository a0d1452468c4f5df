# backend/core/client_info.py
from user_agents import parse as parse_user_agent


def get_client_ip(request):
    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        return x_forwarded_for.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR")


def get_user_agent(request) -> str:
    return request.META.get("HTTP_USER_AGENT", "") or ""


def describe_user_agent(ua_string: str) -> dict:
    """
    {"device_type": "desktop|mobile|tablet", "browser": "...", "os": "..."}
    Unknown or empty user agents count as desktop.
    """
    if not ua_string:
        return {"device_type": "desktop", "browser": "", "os": ""}

    ua = parse_user_agent(ua_string)
    if ua.is_tablet:
        device_type = "tablet"
    elif ua.is_mobile:
        device_type = "mobile"
    else:
        device_type = "desktop"

    browser = f"{ua.browser.family} {ua.browser.version_string}".strip()
    os_name = f"{ua.os.family} {ua.os.version_string}".strip()
    return {"device_type": device_type, "browser": browser[:100], "os": os_name[:100]}
