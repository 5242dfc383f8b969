import os


def _env(name: str, default):
    value = os.getenv(f"TUTORCLUB_{name.upper()}")
    if value is None:
        return default
    if isinstance(default, int):
        return int(value)
    return value


class Settings:
    def __init__(self):
        self.app_name = "TutorClub Billing"
        self.api_version = "1.0.0"
        self.environment = _env("environment", "development")
        self.secret_key = _env("secret_key", "CHANGE_ME")
        self.SECRET_KEY = self.secret_key
        self.access_token_expire_minutes = _env("access_token_expire_minutes", 30)
        self.ACCESS_TOKEN_EXPIRE_MINUTES = self.access_token_expire_minutes
        self.database_url = _env("database_url", "sqlite:///./tutorclub.db")
        self.log_level = _env("log_level", "INFO")
        # Used only to decide what "this month" means for scheduled jobs.
        self.business_timezone = _env("business_timezone", "Asia/Ho_Chi_Minh")
        self.default_sibling_percent = _env("default_sibling_percent", 5)
        self.bulk_max_workers = _env("bulk_max_workers", 1)


_settings_instance = None


def get_settings():
    """Return a singleton Settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
