from __future__ import annotations

from app.custody.core.security import create_actor_access_token
from app.custody.db.models import AssetItem, Document, HolderType
from app.custody.services.transfer_guard import Actor

OFFICE_A = "OFF-A"
OFFICE_B = "OFF-B"
OFFICE_C = "OFF-C"

ADMIN = Actor(user_id="user-admin", role="org_admin", office_id=None, is_org_admin=True)
OFFICE_A_HEAD = Actor(user_id="user-a", role="office_head", office_id=OFFICE_A)
OFFICE_B_HEAD = Actor(user_id="user-b", role="office_head", office_id=OFFICE_B)
OFFICE_C_HEAD = Actor(user_id="user-c", role="office_head", office_id=OFFICE_C)
STORE_KEEPER = Actor(user_id="user-store", role="store_keeper", office_id=None, is_store_operator=True)


def auth_headers(actor: Actor) -> dict[str, str]:
    token = create_actor_access_token(
        user_id=actor.user_id,
        role=actor.role,
        office_id=actor.office_id,
        is_org_admin=actor.is_org_admin,
        store_operator=actor.is_store_operator,
    )
    return {"Authorization": f"Bearer {token}"}


def seed_item(db_session, asset_item_id: str, office_id: str = OFFICE_A) -> AssetItem:
    item = AssetItem(id=asset_item_id, tag=f"TAG-{asset_item_id}", holder_type=HolderType.OFFICE, holder_id=office_id)
    db_session.add(item)
    db_session.commit()
    return item


def seed_document(
    db_session,
    document_id: str,
    office_id: str,
    *,
    doc_type: str = "TransferChallan",
    status: str = "Final",
) -> Document:
    document = Document(
        id=document_id,
        title=f"Challan {document_id}",
        doc_type=doc_type,
        status=status,
        office_id=office_id,
    )
    db_session.add(document)
    db_session.commit()
    return document


def holder_of(db_session, asset_item_id: str) -> tuple[str, str]:
    db_session.expire_all()
    item = db_session.get(AssetItem, asset_item_id)
    return item.holder_type.value, item.holder_id


def transfer_payload(*asset_item_ids: str, from_office_id: str = OFFICE_A, to_office_id: str = OFFICE_B) -> dict:
    return {
        "fromOfficeId": from_office_id,
        "toOfficeId": to_office_id,
        "lines": [{"assetItemId": asset_item_id} for asset_item_id in asset_item_ids],
    }


def create_transfer(client, *asset_item_ids: str, actor: Actor = OFFICE_A_HEAD, **kwargs) -> dict:
    response = client.post(
        "/transfers",
        headers=auth_headers(actor),
        json=transfer_payload(*asset_item_ids, **kwargs),
    )
    assert response.status_code == 201, response.text
    return response.json()


def post_action(client, transfer_id: str, action: str, actor: Actor, json: dict | None = None):
    return client.post(f"/transfers/{transfer_id}/{action}", headers=auth_headers(actor), json=json)
