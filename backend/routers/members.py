from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from database import get_db
from models import UserProfile
from profile_service import DIRECTORY_PAGE_SIZE, get_member, list_directory, set_profile_photo, update_profile
from schemas import (
    DirectoryPage,
    MemberCard,
    PhotoUpdate,
    PresignRequest,
    PresignResponse,
    ProfileResponse,
    ProfileUpdate,
    SortFieldEnum,
    SortOrderEnum,
)
from security import require_member, require_profile
from utils import delete_image, is_owned_upload_url, presign_image_upload, profile_photo_prefix, upload_image

router = APIRouter()


@router.get("/members/me", response_model=ProfileResponse)
def get_my_profile(profile: UserProfile = Depends(require_profile)):
    return ProfileResponse.model_validate(profile)


@router.put("/members/me", response_model=ProfileResponse)
def update_my_profile(
    payload: ProfileUpdate,
    profile: UserProfile = Depends(require_profile),
    db: Session = Depends(get_db),
):
    return ProfileResponse.model_validate(update_profile(db, profile, payload))


@router.post("/members/me/photo/presign", response_model=PresignResponse)
def presign_profile_photo(
    payload: PresignRequest,
    profile: UserProfile = Depends(require_profile),
):
    return presign_image_upload(profile_photo_prefix(profile.uid), payload.filename, payload.content_type)


@router.post("/members/me/photo/confirm", response_model=ProfileResponse)
def confirm_profile_photo(
    payload: PhotoUpdate,
    profile: UserProfile = Depends(require_profile),
    db: Session = Depends(get_db),
):
    if not is_owned_upload_url(payload.photo_url, profile_photo_prefix(profile.uid)):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid photo URL")
    previous = profile.photo
    updated = set_profile_photo(db, profile, payload.photo_url)
    if previous and previous != payload.photo_url:
        delete_image(previous)
    return ProfileResponse.model_validate(updated)


@router.post("/members/me/photo", response_model=ProfileResponse)
def upload_profile_photo(
    file: UploadFile = File(...),
    profile: UserProfile = Depends(require_profile),
    db: Session = Depends(get_db),
):
    url = upload_image(file, profile_photo_prefix(profile.uid))
    previous = profile.photo
    updated = set_profile_photo(db, profile, url)
    if previous:
        delete_image(previous)
    return ProfileResponse.model_validate(updated)


@router.delete("/members/me/photo", response_model=ProfileResponse)
def delete_profile_photo(
    profile: UserProfile = Depends(require_profile),
    db: Session = Depends(get_db),
):
    previous = profile.photo
    updated = set_profile_photo(db, profile, None)
    if previous:
        delete_image(previous)
    return ProfileResponse.model_validate(updated)


@router.get("/members", response_model=DirectoryPage)
def member_directory(
    search: Optional[str] = Query(None, max_length=100),
    sort_by: SortFieldEnum = SortFieldEnum.NAME,
    sort_order: SortOrderEnum = SortOrderEnum.ASC,
    page: int = Query(1, ge=1),
    page_size: int = Query(DIRECTORY_PAGE_SIZE, ge=1, le=100),
    viewer: UserProfile = Depends(require_member),
    db: Session = Depends(get_db),
):
    return list_directory(
        db,
        viewer,
        search=search,
        sort_by=sort_by.value,
        sort_order=sort_order.value,
        page=page,
        page_size=page_size,
    )


@router.get("/members/{uid}", response_model=MemberCard)
def member_detail(
    uid: str,
    viewer: UserProfile = Depends(require_member),
    db: Session = Depends(get_db),
):
    return get_member(db, viewer, uid)
