import os
import secrets

from dotenv import load_dotenv


class Config:
    """Settings read from the environment (and a local .env file)."""

    def __init__(self, **overrides):
        env = os.environ
        self.roboflow_api_key = env.get("ROBOFLOW_API_KEY")
        self.workflow_url = env.get(
            "ROBOFLOW_WORKFLOW_URL",
            "https://detect.roboflow.com/infer/workflows/hunter-diminick/split-g-scoring",
        )
        self.detect_url = env.get("ROBOFLOW_DETECT_URL", "https://detect.roboflow.com")
        self.detect_model = env.get("ROBOFLOW_DETECT_MODEL", "split-g-label-experiment/8")
        self.supabase_url = env.get("SUPABASE_URL")
        self.supabase_key = env.get("SUPABASE_KEY")
        self.supabase_bucket = env.get("SUPABASE_BUCKET", "split-g-images")
        self.geolocation_url = env.get("GEOLOCATION_URL", "https://ipapi.co")
        self.request_timeout = float(env.get("REQUEST_TIMEOUT", 10))
        self.leaderboard_limit = int(env.get("LEADERBOARD_LIMIT", 25))
        self.capture_after = int(env.get("CAPTURE_AFTER", 5))
        self.max_image_side = int(env.get("MAX_IMAGE_SIDE", 1280))
        self.secret_key = env.get("SECRET_KEY") or secrets.token_hex(16)
        self.port = int(env.get("PORT", 8080))

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise TypeError(f"Unknown setting: {key}")
            setattr(self, key, value)

    @classmethod
    def from_env(cls, dotenv_path=None, **overrides):
        load_dotenv(dotenv_path)
        return cls(**overrides)
