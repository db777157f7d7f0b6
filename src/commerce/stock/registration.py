"""Product registration — command and handler."""

import json

from protean import handle
from protean.fields import String, Text
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.stock.product import Product


@commerce.command(part_of="Product")
class RegisterProduct:
    title = String(required=True, max_length=255)
    category = String(max_length=100)
    variants = Text(required=True)  # JSON: list of {size, color, price, stock}


@commerce.command_handler(part_of=Product)
class RegisterProductHandler:
    @handle(RegisterProduct)
    def register_product(self, command):
        variants = json.loads(command.variants) if isinstance(command.variants, str) else command.variants
        product = Product.register(
            title=command.title,
            variants=variants,
            category=command.category,
        )
        current_domain.repository_for(Product).add(product)
        return str(product.id)
