"""Product catalog endpoints."""
from flask import Blueprint

from ryme.blueprints.common import dispatch, read

products_bp = Blueprint('products', __name__)


@products_bp.route('/products', methods=['GET'])
def list_products():
    return read()


@products_bp.route('/products', methods=['POST'])
def create_product():
    """Create a product. Either markup_percentage or markup_amount is required."""
    return dispatch(status=201)


@products_bp.route('/products/<product_id>', methods=['GET'])
def get_product(product_id):
    return read(label=f'Product {product_id}')


@products_bp.route('/products/<product_id>', methods=['PUT'])
def update_product(product_id):
    return dispatch()


@products_bp.route('/products/<product_id>', methods=['DELETE'])
def delete_product(product_id):
    return dispatch()
