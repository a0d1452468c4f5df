from core.client_info import describe_user_agent
from core.qrcodes import qr_code_data_url


def test_user_agent_classification():
    ipad = (
        "Mozilla/5.0 (iPad; CPU OS 15_0 like Mac OS X) AppleWebKit/605.1.15 "
        "(KHTML, like Gecko) Version/15.0 Mobile/15E148 Safari/604.1"
    )
    chrome = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    assert describe_user_agent(ipad)["device_type"] == "tablet"
    desktop = describe_user_agent(chrome)
    assert desktop["device_type"] == "desktop"
    assert desktop["browser"].startswith("Chrome")
    assert desktop["os"].startswith("Windows")


def test_empty_user_agent_counts_as_desktop():
    assert describe_user_agent("") == {"device_type": "desktop", "browser": "", "os": ""}


def test_qr_code_is_png_data_url():
    assert qr_code_data_url("https://example.com/verify/abc").startswith("data:image/png;base64,iVBOR")
