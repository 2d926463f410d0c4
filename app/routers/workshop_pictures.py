from typing import List

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File
from fastapi.responses import FileResponse, JSONResponse
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.workshop import AlbumPicture
from app.routers.workshops import get_workshop_or_404
from app.schemas.workshop import WorkshopOut
from app.utils.assets import AssetStore, get_asset_store, prepare_picture
from app.utils.permissions import Action, require_permission

import logging
logger = logging.getLogger("app.workshops")


router = APIRouter(prefix="/workshops/pic", tags=["Workshop pictures"])


def _file_or_404(store: AssetStore, key: str):
    path = store.open_path(key)
    if path is None:
        return JSONResponse(status_code=404, content={"detail": "File Not Found"})
    return FileResponse(path, media_type="image/png")


@router.get("/{workshop_id}")
def get_main_picture(workshop_id: int, store: AssetStore = Depends(get_asset_store)):
    return _file_or_404(store, store.workshop_main_key(workshop_id))


# workshop_id stays a str so paths such as /album/1 resolve to 404
@router.get("/{workshop_id}/{pic_id}")
def get_album_picture(workshop_id: str, pic_id: str, store: AssetStore = Depends(get_asset_store)):
    return _file_or_404(store, store.workshop_album_key(workshop_id, pic_id))


@router.post("/album/{workshop_id}", response_model=WorkshopOut)
async def upload_album_pictures(
    workshop_id: int,
    pictures: List[UploadFile] = File(...),
    admin=Depends(require_permission(Action.EDIT_WORKSHOP)),
    db: Session = Depends(get_db),
    store: AssetStore = Depends(get_asset_store),
):
    w = get_workshop_or_404(db, workshop_id)

    # every file is validated and rendered before the first write
    rendered = [await prepare_picture(f) for f in pictures]

    next_position = max((p.position for p in w.album), default=-1) + 1
    for offset, data in enumerate(rendered):
        pic_id = store.new_picture_id()
        key = store.workshop_album_key(w.id, pic_id)
        store.save(key, data)
        w.album.append(AlbumPicture(id=pic_id, key=key, position=next_position + offset))

    db.commit()
    db.refresh(w)
    logger.info("Admin %s added %d album pictures to workshop %s", admin.username, len(rendered), w.id)
    return WorkshopOut.from_model(w)


@router.delete("/album/{workshop_id}/{pic_id}", response_model=WorkshopOut)
def delete_album_picture(
    workshop_id: int,
    pic_id: str,
    admin=Depends(require_permission(Action.EDIT_WORKSHOP)),
    db: Session = Depends(get_db),
    store: AssetStore = Depends(get_asset_store),
):
    w = get_workshop_or_404(db, workshop_id)
    pic = (
        db.query(AlbumPicture)
        .filter(AlbumPicture.id == pic_id, AlbumPicture.workshop_id == w.id)
        .first()
    )
    if not pic:
        raise HTTPException(status_code=404, detail="Picture not found")

    store.delete(pic.key)
    w.album.remove(pic)
    db.commit()
    db.refresh(w)
    logger.info("Admin %s removed album picture %s of workshop %s", admin.username, pic_id, w.id)
    return WorkshopOut.from_model(w)


@router.post("/{workshop_id}", response_model=WorkshopOut)
async def upload_main_picture(
    workshop_id: int,
    main_pic: UploadFile = File(..., alias="mainPic"),
    admin=Depends(require_permission(Action.EDIT_WORKSHOP)),
    db: Session = Depends(get_db),
    store: AssetStore = Depends(get_asset_store),
):
    w = get_workshop_or_404(db, workshop_id)

    data = await prepare_picture(main_pic)
    key = store.workshop_main_key(w.id)
    store.save(key, data)

    w.pic_key = key
    db.commit()
    db.refresh(w)
    logger.info("Admin %s uploaded main picture of workshop %s", admin.username, w.id)
    return WorkshopOut.from_model(w)


@router.delete("/{workshop_id}", response_model=WorkshopOut)
def delete_main_picture(
    workshop_id: int,
    admin=Depends(require_permission(Action.EDIT_WORKSHOP)),
    db: Session = Depends(get_db),
    store: AssetStore = Depends(get_asset_store),
):
    w = get_workshop_or_404(db, workshop_id)
    if not w.pic_key:
        raise HTTPException(status_code=404, detail="Picture not found")

    store.delete(w.pic_key)
    w.pic_key = None
    db.commit()
    db.refresh(w)
    logger.info("Admin %s removed main picture of workshop %s", admin.username, w.id)
    return WorkshopOut.from_model(w)
