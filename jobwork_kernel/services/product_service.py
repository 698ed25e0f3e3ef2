"""
ProductService -- the Product Stock Registry.

Responsibility:
    Registers products and applies every change to a product's
    ``total_available_stock``.  Other services call ``credit``/``debit``
    on a product they have already locked; nothing else writes the
    counter.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - total_available_stock never goes negative (checked here before the
      write and by a DB check constraint).
    - Products of another tenant are reported as not found.
"""

from uuid import UUID

from sqlalchemy import select

from jobwork_kernel.exceptions import InsufficientStockError, NotFoundError, ValidationError
from jobwork_kernel.logging_config import get_logger
from jobwork_kernel.models.product import Product
from jobwork_kernel.services.base import BaseService

logger = get_logger("services.product")


class ProductService(BaseService):
    def register(
        self,
        tenant_id: UUID,
        title: str,
        actor_id: UUID,
        sku: str | None = None,
    ) -> Product:
        """Create a product with zero stock."""
        if not title or not title.strip():
            raise ValidationError("Product title is required", field="title")
        if sku is not None:
            sku = sku.strip() or None
        if sku is not None:
            clash = self.session.execute(
                select(Product.id).where(Product.tenant_id == tenant_id, Product.sku == sku)
            ).scalar_one_or_none()
            if clash is not None:
                raise ValidationError(f"SKU {sku} is already in use", field="sku")

        product = Product(
            tenant_id=tenant_id,
            title=title.strip(),
            sku=sku,
            total_available_stock=0,
            created_by_id=actor_id,
        )
        self.session.add(product)
        self.session.flush()

        logger.info(
            "product_registered",
            extra={"product_id": str(product.id), "title": product.title},
        )
        return product

    def lock_for_tenant(self, tenant_id: UUID, product_ids) -> dict[UUID, Product]:
        """
        Lock the given products (ascending id order) and verify tenancy.

        Raises:
            NotFoundError: for the first id that is missing or belongs to
                another tenant.
        """
        wanted = sorted(set(product_ids), key=str)
        locked = self._lock_many(Product, wanted)
        for product_id in wanted:
            product = locked.get(product_id)
            if product is None or product.tenant_id != tenant_id:
                raise NotFoundError("Product", str(product_id))
        return locked

    def credit(self, product: Product, quantity: int, actor_id: UUID) -> None:
        product.total_available_stock += quantity
        product.updated_by_id = actor_id
        logger.debug(
            "product_stock_credited",
            extra={
                "product_id": str(product.id),
                "quantity": quantity,
                "total_available_stock": product.total_available_stock,
            },
        )

    def debit(self, product: Product, quantity: int, actor_id: UUID) -> None:
        if product.total_available_stock < quantity:
            raise InsufficientStockError(
                product_id=str(product.id),
                available=product.total_available_stock,
                requested=quantity,
            )
        product.total_available_stock -= quantity
        product.updated_by_id = actor_id
        logger.debug(
            "product_stock_debited",
            extra={
                "product_id": str(product.id),
                "quantity": quantity,
                "total_available_stock": product.total_available_stock,
            },
        )
