from __future__ import annotations

from inquaire.business.reply_templates.models import ReplyTemplate
from inquaire.platform.security.repository import BaseRepository


class ReplyTemplateRepository(BaseRepository[ReplyTemplate]):
    model = ReplyTemplate
    resource = "ReplyTemplate"
