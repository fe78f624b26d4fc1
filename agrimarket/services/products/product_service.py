# agrimarket/services/products/product_service.py
from __future__ import annotations

from decimal import Decimal, InvalidOperation as DecimalError
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy import case, func, or_, select
from sqlalchemy.exc import SQLAlchemyError

from agrimarket.errors import Forbidden, NotFound, ValidationError
from agrimarket.models.enums import (
    FARMER_SETTABLE_PRODUCT_STATUSES,
    ProductStatus,
    Role,
    parse_enum,
)
from agrimarket.models.product_models import CreateProductModel, UpdateProductModel
from agrimarket.services.auth.access import Actor, farmer_for_user
from agrimarket.services.pagination import paginate
from agrimarket.services.products.image_store import LocalImageStore, absolute_url
from agrimarket.tables import Farmer, Product, ProductView, User, utcnow

SORTS = {
    "price_asc": Product.price.asc(),
    "price_desc": Product.price.desc(),
    "newest": Product.created_at.desc(),
    "oldest": Product.created_at.asc(),
}


def product_payload(product: Product, detailed: bool = False) -> Dict[str, Any]:
    data = product.to_dict()
    data["image_url"] = absolute_url(product.image_url)
    farmer = product.farmer
    user = farmer.user if farmer else None
    data["farm_name"] = farmer.farm_name if farmer else None
    data["farmer_name"] = user.full_name if user else None
    data["barangay"] = user.barangay if user else None
    data["contact_number"] = user.contact_number if user else None
    if detailed:
        data["verified_status"] = farmer.verified_status if farmer else False
        data["email"] = user.email if user else None
    return data


def _decimal_arg(args, key) -> Optional[Decimal]:
    raw = args.get(key)
    if raw in (None, ""):
        return None
    try:
        return Decimal(raw)
    except (DecimalError, ValueError):
        raise ValidationError(f"{key} must be a number")


class ProductService:
    def __init__(self, session, images: Optional[LocalImageStore] = None):
        self.session = session
        self._images = images

    @property
    def images(self) -> LocalImageStore:
        if self._images is None:
            self._images = LocalImageStore()
        return self._images

    # ---------------------------------------------------------------
    # helpers
    # ---------------------------------------------------------------
    def _public_query(self):
        return (
            select(Product)
            .join(Farmer, Product.farmer_id == Farmer.farmer_id)
            .join(User, Farmer.user_id == User.user_id)
            .where(Farmer.verified_status.is_(True))
        )

    def get(self, product_id: int) -> Product:
        product = self.session.get(Product, product_id)
        if product is None:
            raise NotFound("Product not found")
        return product

    def _owned(self, actor: Actor, product_id: int, action: str = "update") -> Product:
        product = self.get(product_id)
        farmer = farmer_for_user(self.session, actor.user_id)
        if farmer is None:
            raise Forbidden(f"You need to register as a farmer first to {action} products")
        if product.farmer_id != farmer.farmer_id:
            raise Forbidden(f"You are not authorized to {action} this product")
        return product

    def _replace_image(self, product: Product, image_file) -> Optional[str]:
        new_ref = self.images.store(image_file)
        old_ref = product.image_url
        product.image_url = new_ref
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            self.images.delete(new_ref)
            raise
        if old_ref:
            self.images.delete(old_ref)
        return new_ref

    # ---------------------------------------------------------------
    # farmer operations
    # ---------------------------------------------------------------
    def create(self, actor: Actor, payload: Dict[str, Any], image_file=None) -> Product:
        data = CreateProductModel(**payload)

        farmer = farmer_for_user(self.session, actor.user_id)
        if farmer is None:
            raise Forbidden("You need to register as a farmer first to list products")
        if not farmer.verified_status:
            raise Forbidden("Your farmer account is pending verification")

        image_ref = self.images.store(image_file) if image_file else ""
        product = Product(
            farmer_id=farmer.farmer_id,
            product_name=data.product_name,
            category=data.category,
            price=data.price,
            harvest_date=data.harvest_date,
            description=data.description or "",
            image_url=image_ref,
            quantity=data.quantity,
            status=ProductStatus.AVAILABLE if data.quantity > 0 else ProductStatus.UNAVAILABLE,
        )
        self.session.add(product)
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            self.images.delete(image_ref)
            raise

        current_app.logger.info(
            "Product %s created by farmer %s", product.product_id, farmer.farmer_id
        )
        return product

    def mine(self, actor: Actor) -> List[Product]:
        farmer = farmer_for_user(self.session, actor.user_id)
        if farmer is None:
            raise Forbidden("You need to register as a farmer first to view your products")
        available_first = case((Product.status == ProductStatus.AVAILABLE, 1), else_=2)
        return self.session.execute(
            select(Product)
            .where(Product.farmer_id == farmer.farmer_id)
            .order_by(available_first, Product.created_at.desc(), Product.product_id.desc())
        ).scalars().all()

    def update(self, actor: Actor, product_id: int, payload: Dict[str, Any], image_file=None) -> Product:
        product = self._owned(actor, product_id)
        changes = UpdateProductModel(**payload).changes()
        if not changes and not image_file:
            raise ValidationError("No valid fields to update")

        for key, value in changes.items():
            setattr(product, key, value)

        if "quantity" in changes:
            if product.quantity == 0:
                product.status = ProductStatus.UNAVAILABLE
            elif product.status is ProductStatus.UNAVAILABLE:
                product.status = ProductStatus.AVAILABLE

        if image_file:
            self._replace_image(product, image_file)
        else:
            self.session.commit()
        return product

    def update_status(self, actor: Actor, product_id: int, status) -> Product:
        new_status = parse_enum(ProductStatus, status)
        if new_status not in FARMER_SETTABLE_PRODUCT_STATUSES:
            raise ValidationError("Invalid status value. Must be AVAILABLE or UNAVAILABLE")

        product = self._owned(actor, product_id)
        product.status = new_status
        self.session.commit()
        return product

    def update_image(self, actor: Actor, product_id: int, image_file) -> Product:
        if not image_file:
            raise ValidationError("No image file provided")
        product = self._owned(actor, product_id)
        self._replace_image(product, image_file)
        return product

    def delete(self, actor: Actor, product_id: int) -> Product:
        """Soft delete: the listing becomes UNAVAILABLE and its image is removed."""
        product = self._owned(actor, product_id, action="delete")
        old_ref = product.image_url
        product.status = ProductStatus.UNAVAILABLE
        product.image_url = ""
        self.session.commit()
        if old_ref:
            self.images.delete(old_ref)
        return product

    # ---------------------------------------------------------------
    # public catalog
    # ---------------------------------------------------------------
    def list_public(self, args, page: int, limit: int):
        status = parse_enum(ProductStatus, args.get("status") or ProductStatus.AVAILABLE)
        if status is None:
            raise ValidationError("Invalid status")

        stmt = self._public_query().where(Product.status == status)

        if args.get("category"):
            stmt = stmt.where(func.lower(Product.category) == args["category"].strip().lower())
        if args.get("barangay"):
            stmt = stmt.where(func.lower(User.barangay) == args["barangay"].strip().lower())

        min_price = _decimal_arg(args, "min_price")
        max_price = _decimal_arg(args, "max_price")
        if min_price is not None:
            stmt = stmt.where(Product.price >= min_price)
        if max_price is not None:
            stmt = stmt.where(Product.price <= max_price)

        sort = SORTS.get(args.get("sort_by") or "newest", SORTS["newest"])
        stmt = stmt.order_by(sort, Product.product_id.desc())
        return paginate(self.session, stmt, page, limit)

    def search(self, query: Optional[str]) -> List[Product]:
        term = (query or "").strip()
        if not term:
            raise ValidationError("Search query is required")

        pattern = f"%{term.lower()}%"
        stmt = (
            self._public_query()
            .where(Product.status == ProductStatus.AVAILABLE)
            .where(
                or_(
                    func.lower(Product.product_name).like(pattern),
                    func.lower(Product.description).like(pattern),
                    func.lower(Product.category).like(pattern),
                    func.lower(Farmer.farm_name).like(pattern),
                )
            )
            .order_by(Product.created_at.desc(), Product.product_id.desc())
        )
        return self.session.execute(stmt).scalars().all()

    def by_category(self, category: str) -> List[Product]:
        stmt = (
            self._public_query()
            .where(Product.status == ProductStatus.AVAILABLE)
            .where(func.lower(Product.category) == category.strip().lower())
            .order_by(Product.created_at.desc(), Product.product_id.desc())
        )
        return self.session.execute(stmt).scalars().all()

    def view(self, product_id: int, actor: Optional[Actor]) -> Product:
        product = self.get(product_id)
        if actor is not None and actor.role is Role.CUSTOMER:
            self._record_view(actor.user_id, product_id)
        return product

    def _record_view(self, user_id: int, product_id: int):
        try:
            row = self.session.execute(
                select(ProductView).where(
                    ProductView.user_id == user_id, ProductView.product_id == product_id
                )
            ).scalar_one_or_none()
            if row is None:
                self.session.add(ProductView(user_id=user_id, product_id=product_id))
            else:
                row.view_count += 1
                row.last_viewed_at = utcnow()
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            current_app.logger.warning("Could not record product view: %s", e)
