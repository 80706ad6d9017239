from __future__ import annotations

from workhub.platform.security.repository import BaseRepository
from workhub.work_items.models import WorkItem


class WorkItemRepository(BaseRepository):
    resource = "work_items"
    model = WorkItem
    organization_field = "organization_id"
    owner_field = "created_by"
