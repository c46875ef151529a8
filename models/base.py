from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


# ============================================================================
# ENUMS
# ============================================================================

class ListingStatus(str, enum.Enum):
    """Property listing status"""
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class MigrationPhase(str, enum.Enum):
    """Run-level phase recorded in the checkpoint"""
    PARSING = "parsing"
    IMPORTING = "importing"
    IMAGES = "images"
    COMPLETE = "complete"


class FailurePhase(str, enum.Enum):
    """Stage at which a single record failed"""
    IMPORT = "import"
    COVER_PHOTO = "cover_photo"
    GALLERY = "gallery"
    IMAGES = "images"


class MigrationMode(str, enum.Enum):
    """Operator-selected operating mode"""
    VALIDATE = "validate"
    TEST = "test"
    IMAGES = "images"
    FULL = "full"
    RESUME = "resume"
    VERIFY = "verify"
