"""
Business Service - Business Logic for Business Operations
"""
from typing import Optional
from sqlalchemy.orm import Session
from bizpulse.models import Business
from bizpulse.schemas import BusinessCreate, BusinessUpdate, BusinessSettings


class BusinessService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, business_id: int) -> Optional[Business]:
        return self.db.query(Business).filter(Business.id == business_id).first()

    def get_by_user(self, user_id: int) -> Optional[Business]:
        return self.db.query(Business).filter(Business.user_id == user_id).first()

    def create(self, business_data: BusinessCreate, user_id: int) -> Business:
        """Create the business owned by ``user_id``"""
        business = Business(
            user_id=user_id,
            name=business_data.name,
            description=business_data.description,
            category=business_data.category.value,
            address=business_data.address,
            phone=business_data.phone,
            tax_id=business_data.tax_id,
            currency=business_data.currency.value,
            timezone=business_data.timezone,
            settings=business_data.settings.model_dump(by_alias=True)
        )
        self.db.add(business)
        self.db.flush()
        return business

    def update(self, user_id: int, business_data: BusinessUpdate, logo_url: Optional[str] = None) -> Optional[Business]:
        business = self.get_by_user(user_id)
        if not business:
            return None

        update_data = business_data.model_dump(exclude_unset=True, exclude={"settings"})
        for key, value in update_data.items():
            if value is None:
                continue
            setattr(business, key, getattr(value, "value", value))

        # Settings are merged key by key; reassigning the dict marks the JSON column dirty
        if business_data.settings is not None:
            current = BusinessSettings.model_validate(business.settings or {})
            changes = business_data.settings.model_dump(exclude_unset=True, exclude_none=True)
            merged = current.model_copy(update=changes)
            business.settings = merged.model_dump(by_alias=True)

        if logo_url:
            business.logo_url = logo_url

        self.db.flush()
        return business
