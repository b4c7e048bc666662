import requests
from Utils.Logger import get_logger


class NtfyNotifier:
    """Sends speeding alerts to an ntfy topic"""

    title = "A car is speeding!"
    priority = "4"
    tags = "rotating_light, policeman"

    def __init__(self, url: str, timeout: float = 10.0, session: requests.Session = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = get_logger(__name__)

    def build_message(self, plate: str, kmh: float) -> str:
        return f"License plate {plate} is going {kmh:.2f} km/h. Please send them a fine!"

    def notify(self, plate: str, kmh: float) -> bool:
        headers = {
            "Title": self.title,
            "Priority": self.priority,
            "Tags": self.tags,
        }
        try:
            response = self.session.post(
                self.url,
                data=self.build_message(plate, kmh).encode("utf-8"),
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            self.logger.error(f"couldn't send notification to ntfy: {e}")
            return False

        self.logger.info(f"sent notification to ntfy plate={plate} kmh={kmh:.2f}")
        return True
