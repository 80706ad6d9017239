from workhub.work_items.service import WorkItemCoreService, WorkItemsService, create_work_items_service

__all__ = ["WorkItemCoreService", "WorkItemsService", "create_work_items_service"]
