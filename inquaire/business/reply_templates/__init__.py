from inquaire.business.reply_templates.models import ReplyTemplate
from inquaire.business.reply_templates.schemas import ReplyTemplateCreate, ReplyTemplateRead, ReplyTemplateUpdate

__all__ = [
    "ReplyTemplate",
    "ReplyTemplateCreate",
    "ReplyTemplateUpdate",
    "ReplyTemplateRead",
]
