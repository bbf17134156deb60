from sqlalchemy import select

from app.custody.db.models import AssetItem


class AssetItemRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, asset_item_id: str) -> AssetItem | None:
        return self.db.get(AssetItem, asset_item_id)

    def lock_many(self, asset_item_ids: list[str]) -> dict[str, AssetItem]:
        if not asset_item_ids:
            return {}
        rows = (
            self.db.execute(
                select(AssetItem)
                .where(AssetItem.id.in_(asset_item_ids))
                .order_by(AssetItem.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            .scalars()
            .all()
        )
        return {row.id: row for row in rows}
