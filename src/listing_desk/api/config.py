"""
Listing Desk Configuration

Settings come from environment variables, optionally loaded from a `.env`
file at the repository root.
Remote table: Supabase PostgREST (<SUPABASE_URL>/rest/v1)
Object storage: Supabase Storage (<SUPABASE_URL>/storage/v1)
"""
import logging
import os
from pathlib import Path
from dotenv import load_dotenv


LOGGER = logging.getLogger(__name__)


def _clean_env(value: str) -> str:
    """Trim whitespace and surrounding quotes from env values."""
    if value is None:
        return ''
    value = value.strip()
    if (value.startswith('"') and value.endswith('"')) or (value.startswith("'") and value.endswith("'")):
        value = value[1:-1]
    return value.strip()


def _env(name: str, default: str = '') -> str:
    return _clean_env(os.getenv(name, default))


def _env_bool(name: str, default: str = 'false') -> bool:
    return _env(name, default).lower() in ('true', '1', 'yes')


# Load environment variables
env_path = Path(__file__).parent.parent.parent.parent / '.env'
load_dotenv(env_path)


class Config:
    """Configuration class for the listings dashboard"""

    # Hosted database (anon key is safe to hand to the browser)
    SUPABASE_URL = _env('SUPABASE_URL')
    SUPABASE_ANON_KEY = _env('SUPABASE_ANON_KEY')

    LISTINGS_TABLE = _env('LISTINGS_TABLE', 'mlianglistings')
    PHOTOS_BUCKET = _env('LISTINGS_BUCKET', 'mliangwatermarklistings')

    # Request Settings (no retries: failures are surfaced as-is)
    REQUEST_TIMEOUT = int(_env('LISTINGS_REQUEST_TIMEOUT', '30'))
    DEBUG = _env_bool('LISTINGS_DEBUG')

    # Dashboard
    SECRET_KEY = _env('SECRET_KEY', 'dev-secret-key-change-in-production')
    PAGE_SIZE = int(_env('LISTINGS_PAGE_SIZE', '25'))
    MAX_CONTENT_LENGTH_MB = int(_env('MAX_CONTENT_LENGTH_MB', '50'))
    FIELDS_FILE = _env('LISTINGS_FIELDS_FILE')

    # Watermarking
    LOGO_PATH = _env('LISTINGS_LOGO_PATH')
    FONT_PATH = _env('LISTINGS_FONT_PATH', 'DejaVuSans-Bold.ttf')
    CONTACT_TEXT = _env('LISTINGS_CONTACT_TEXT', '')
    JPEG_QUALITY = int(_env('LISTINGS_JPEG_QUALITY', '90'))

    # Upload batches
    BATCH_POLICY = _env('LISTINGS_BATCH_POLICY', 'continue').lower()
    ROLLBACK_ON_ABORT = _env_bool('LISTINGS_ROLLBACK_ON_ABORT')

    # Signature block appended to generated social posts
    BROKER_NAME = _env('LISTINGS_BROKER_NAME', 'Listing Desk Realty')
    BROKER_TITLE = _env('LISTINGS_BROKER_TITLE', 'LICENSED REAL ESTATE BROKER')
    BROKER_LICENSE = _env('LISTINGS_BROKER_LICENSE', '')
    BROKER_CONTACT = _env('LISTINGS_BROKER_CONTACT', '')
    POST_HEADLINE = _env('LISTINGS_POST_HEADLINE', '‼️HOUSE AND LOT FOR SALE‼️')
    POST_HASHTAGS = _env(
        'LISTINGS_POST_HASHTAGS',
        '#realestate #realtor #realestateagent #property #home #broker #forsale '
        '#justlisted #newlisting #homesforsale #houseforsale #dreamhome'
    )

    @classmethod
    def is_configured(cls) -> bool:
        """Check if the hosted database credentials are present"""
        return bool(cls.SUPABASE_URL and cls.SUPABASE_ANON_KEY)

    @classmethod
    def validate(cls) -> bool:
        """Validate required configuration"""
        if cls.is_configured():
            return True
        LOGGER.error("Missing required configuration: SUPABASE_URL and SUPABASE_ANON_KEY")
        return False

    @classmethod
    def signature_lines(cls) -> list:
        """Non-empty lines of the brokerage signature block"""
        lines = [cls.BROKER_NAME, cls.BROKER_TITLE]
        if cls.BROKER_LICENSE:
            lines.append(f"PRC NO. {cls.BROKER_LICENSE}")
        lines.append(cls.BROKER_CONTACT)
        return [line for line in lines if line]


def configure_logging(debug: bool = None):
    """Basic stream logging for the dashboard and the CLI"""
    if debug is None:
        debug = Config.DEBUG
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )
