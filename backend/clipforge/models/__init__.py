# Models module
from clipforge.models.credit_account import CreditAccount
from clipforge.models.video import Video, VideoStatus, FilterMode, AspectRatio
from clipforge.models.clip import Clip

__all__ = ["CreditAccount", "Video", "VideoStatus", "FilterMode", "AspectRatio", "Clip"]
