from inquaire.business.channels.models import Channel
from inquaire.business.channels.schemas import ChannelCreate, ChannelRead, ChannelUpdate, Platform

__all__ = [
    "Channel",
    "ChannelCreate",
    "ChannelUpdate",
    "ChannelRead",
    "Platform",
]
