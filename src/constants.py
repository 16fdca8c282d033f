import os
import tempfile
import traceback

from dotenv import load_dotenv

load_dotenv(os.getenv("ENV_FILE"), override=True)

if env_secret := os.getenv("ENV_SECRET"):
    try:
        # Parameter value holds key=value lines, one per variable
        print(f"Loading environment variables from {env_secret}\n")

        import boto3

        ssm = boto3.client("ssm", region_name=os.getenv("REGION", "us-east-1"))
        response = ssm.get_parameter(Name=env_secret, WithDecryption=True)
        count = 0
        for line in response["Parameter"]["Value"].splitlines():
            if not line.strip() or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            os.environ[key] = value
            count += 1
            is_secret = any(
                marker in key.upper() for marker in ("KEY", "TOKEN", "SECRET", "CRED")
            )
            print(f"    {key}{f'= {value}' if not is_secret else '=*****'}")

        print(f"\nEnvironment variables loaded successfully. Total loaded: {count}")
    except Exception as e:
        print(f"Error loading environment variables from AWS Parameter Store: {e}")
        traceback.print_exc()


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


def _optional_int_env(name: str) -> int | None:
    value = os.getenv(name)
    return int(value) if value else None


# General
PRODUCT = os.getenv("PRODUCT", "kiddo")
VERSION = os.environ.get("VERSION", "0")
ENV = os.getenv("ENV", "stg")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Text generation
LLM_MODEL = os.getenv("LLM_MODEL", "claude-3-haiku-20240307")
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")

# Image generation (Replicate)
REPLICATE_API_TOKEN = os.getenv("REPLICATE_API_TOKEN")
REPLICATE_API_URL = os.getenv(
    "REPLICATE_API_URL", "https://api.replicate.com/v1/predictions"
)
REPLICATE_MODEL = os.getenv("REPLICATE_MODEL", "ideogram-ai/ideogram-v2a-turbo")
IMAGE_POLL_INTERVAL = _float_env("IMAGE_POLL_INTERVAL", 3.0)
IMAGE_POLL_TIMEOUT = _float_env("IMAGE_POLL_TIMEOUT", 60.0)
IMAGE_SERVER_ERROR_BACKOFF = _float_env("IMAGE_SERVER_ERROR_BACKOFF", 2.0)

# Voice generation (ElevenLabs)
ELEVENLABS_API_KEY = os.getenv("ELEVENLABS_API_KEY")
# Nicole: young, friendly, clear
ELEVENLABS_VOICE_ID = os.getenv("ELEVENLABS_VOICE_ID", "piTKgcLEGmPE4e6mEKli")
ELEVENLABS_MODEL_ID = os.getenv("ELEVENLABS_MODEL_ID", "eleven_monolingual_v1")

# Local storage
AUDIO_CACHE_DIR = os.getenv(
    "AUDIO_CACHE_DIR", os.path.join(tempfile.gettempdir(), f"{PRODUCT}-audio")
)
CONTENT_STORE_DIR = os.getenv("CONTENT_STORE_DIR", "output/content")

# Cloudflare R2 (optional image re-hosting)
R2_ACCOUNT_ID = os.getenv("R2_ACCOUNT_ID")
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY")
R2_BUCKET_NAME = os.getenv("R2_BUCKET_NAME")

# None means unbounded fan-out
MEDIA_CONCURRENCY_LIMIT = _optional_int_env("MEDIA_CONCURRENCY_LIMIT")
