# catalog_service/main.py

"""
FastAPI Catalog Service API.
Manages the product catalog: creation, retrieval, updates and deletion of
products, with product images kept on a hosted blob store and every response
wrapped in a `{success, message, ...}` envelope.
"""
import logging
import sys
import time
from contextlib import contextmanager

from fastapi import Depends, FastAPI, Path, Request, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import DataError, IntegrityError, OperationalError
from sqlalchemy.orm import Session, joinedload

from . import assets
from .assets import AzureBlobAssetStore, decode_image, get_asset_store
from .db import Base, engine, get_db
from .errors import (
    CatalogError,
    InternalError,
    NotFoundError,
    ValidationError,
    register_error_handlers,
)
from .filters import filter_query
from .models import MAX_INTEGER, Category, Product
from .schemas import (
    ErrorResponse,
    MessageResponse,
    ProductCreate,
    ProductCreatedResponse,
    ProductDetailEnvelope,
    ProductDetailResponse,
    ProductListResponse,
    ProductResponse,
    ProductUpdate,
    RecentProductsResponse,
)

# -----------------------------
# Configure Logging
# -----------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

# Suppress noisy logs from third-party libraries for cleaner output
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("uvicorn.error").setLevel(logging.INFO)
logging.getLogger("azure.core.pipeline.policies.http_logging_policy").setLevel(
    logging.WARNING
)

if (
    assets.AZURE_STORAGE_ACCOUNT_NAME and assets.AZURE_STORAGE_ACCOUNT_KEY
) or assets.AZURE_STORAGE_CONNECTION_STRING:
    logger.info("Catalog Service: Azure environment variables populated correctly.")
else:
    logger.info("Catalog Service: Azure environment variables **NOT SET**")

# Hosted images for products all live under this folder
PRODUCT_IMAGE_FOLDER = "products"
RECENT_PRODUCTS_LIMIT = 10

# Public query parameter names that differ from model attributes
FILTER_ALIASES = {"category": "category_id"}

# Store-assigned product ids are positive and fit an Integer column
PRODUCT_ID = Path(..., ge=1, le=MAX_INTEGER, description="Identifier of the product.")

ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
}


# -----------------------------
# FastAPI App Initialization
# -----------------------------
app = FastAPI(
    title="Catalog Service API",
    description="Manages the product catalog and its hosted product images",
    version="1.0.0",
)

# Enable CORS (for frontend dev/testing)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Use specific origins in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)


# --- FastAPI Event Handlers ---
@app.on_event("startup")
async def startup_event():
    """
    Handles application startup events.
    Ensures database tables are created (if not exist).
    Includes a retry mechanism for database connection robustness.
    """
    max_retries = 10
    retry_delay_seconds = 5
    for i in range(max_retries):
        try:
            logger.info(
                f"Attempting to connect to the database and create tables (attempt {i+1}/{max_retries})..."
            )
            Base.metadata.create_all(bind=engine)
            logger.info("Successfully connected to the database and ensured tables exist.")
            break  # Exit loop if successful
        except OperationalError as e:
            logger.warning(f"Failed to connect to the database: {e}")
            if i < max_retries - 1:
                logger.info(f"Retrying in {retry_delay_seconds} seconds...")
                time.sleep(retry_delay_seconds)
            else:
                logger.critical(
                    f"Failed to connect to the database after {max_retries} attempts. Exiting application."
                )
                sys.exit(1)  # Critical failure: exit if DB connection is unavailable
        except Exception as e:
            logger.critical(
                f"An unexpected error occurred during database startup: {e}",
                exc_info=True,
            )
            sys.exit(1)


@contextmanager
def handle_failures(db: Session, failure_message: str):
    """
    Rolls back the session on any failure and maps it onto the error types:
    catalog errors pass through, store constraint violations become 400s and
    anything else becomes a 500 carrying `failure_message`.
    """
    try:
        yield
    except CatalogError:
        db.rollback()
        raise
    except (IntegrityError, DataError) as e:
        db.rollback()
        reason = str(e.orig).splitlines()[0] if e.orig is not None else str(e)
        logger.warning(f"Database rejected the change: {reason}")
        raise ValidationError(reason)
    except Exception as e:
        db.rollback()
        logger.error(f"{failure_message} ({e})", exc_info=True)
        raise InternalError(failure_message)


def _ensure_category(db: Session, category_id: int) -> None:
    if db.get(Category, category_id) is None:
        raise ValidationError(f"Category {category_id} does not exist!")


def _find_product(db: Session, product_id: int, with_category: bool = False) -> Product:
    query = db.query(Product)
    if with_category:
        query = query.options(joinedload(Product.category))
    product = query.filter(Product.product_id == product_id).first()
    if not product:
        logger.warning(f"Product with ID: {product_id} not found.")
        raise NotFoundError("Product not found!")
    return product


# --- Root Endpoint ---
@app.get("/", status_code=status.HTTP_200_OK, summary="Root endpoint")
async def read_root():
    """
    Returns a welcome message for the Catalog Service.
    """
    return {"message": "Welcome to the Catalog Service!"}


# --- Health Check Endpoint ---
@app.get("/health", status_code=status.HTTP_200_OK, summary="Health check endpoint")
async def health_check():
    """
    A simple health check endpoint to verify the service is running.
    Returns 200 OK if the service is alive.
    """
    return {"status": "ok", "service": "catalog-service"}


# -----------------------------
# CRUD Endpoints
# -----------------------------


@app.post(
    "/products/",
    response_model=ProductCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
    summary="Add a new product",
)
def add_product(
    payload: ProductCreate,
    db: Session = Depends(get_db),
    asset_store: AzureBlobAssetStore = Depends(get_asset_store),
):
    """
    Creates a new product.

    - Every field is required and `kilogramOption` must be a non-empty list.
    - The image is uploaded to the asset store first; if that fails nothing is saved.
    - Returns the created product as `newProduct`.
    """
    logger.info(f"Adding product: {payload.name}")
    with handle_failures(db, "Something went wrong while adding the product!"):
        required = (payload.rate, payload.stocks, payload.category, payload.kilogram_option)
        if not payload.name or not payload.image or any(v is None for v in required):
            raise ValidationError("Missing required fields!")
        if not payload.kilogram_option:
            raise ValidationError("KilogramOption must be a non-empty array!")
        _ensure_category(db, payload.category)

        result = asset_store.upload(payload.image, folder=PRODUCT_IMAGE_FOLDER)

        product = Product(
            name=payload.name,
            rate=payload.rate,
            stocks=payload.stocks,
            category_id=payload.category,
            kilogram_option=[option.model_dump() for option in payload.kilogram_option],
            public_id=result.public_id,
            url=result.url,
        )
        db.add(product)
        db.commit()
        db.refresh(product)
    logger.info(f"Product '{product.name}' (ID: {product.product_id}) added successfully.")
    return ProductCreatedResponse(
        message="Product added successfully!",
        new_product=ProductResponse.model_validate(product),
    )


@app.get(
    "/products/",
    response_model=ProductListResponse,
    responses=ERROR_RESPONSES,
    summary="List products with filtering, sorting and pagination",
)
def get_all_products(request: Request, db: Session = Depends(get_db)):
    """
    Retrieves products matching the query string.

    - `field=value` and `field[gt|gte|lt|lte|ne]=value` filter on product fields.
    - `sort=-rate,name` orders the results; newest first by default.
    - `page` and `limit` paginate; `search` matches names case-insensitively.
    - `productsDocCount` is the total number of products, ignoring filters.
    """
    params = request.query_params.multi_items()
    logger.info(f"Listing products with params: {params}")
    with handle_failures(db, "Something went wrong while retrieving the products!"):
        products_doc_count = db.query(Product).count()
        query = filter_query(
            db.query(Product).options(joinedload(Product.category)),
            Product,
            params,
            aliases=FILTER_ALIASES,
            default_sort=[Product.created_at.desc(), Product.product_id.desc()],
            search_column="name",
        )
        products = query.all()
    logger.info(f"Retrieved {len(products)} of {products_doc_count} products.")
    return ProductListResponse(
        message="Products retrieved successfully!",
        products=[ProductDetailResponse.model_validate(p) for p in products],
        products_doc_count=products_doc_count,
    )


@app.get(
    "/products/recent",
    response_model=RecentProductsResponse,
    responses=ERROR_RESPONSES,
    summary="List the most recently added products",
)
def get_recent_products(db: Session = Depends(get_db)):
    """
    Returns the 10 most recently created products, newest first.
    """
    with handle_failures(db, "Something went wrong while retrieving recent products!"):
        products = (
            db.query(Product)
            .order_by(Product.created_at.desc(), Product.product_id.desc())
            .limit(RECENT_PRODUCTS_LIMIT)
            .all()
        )
    logger.info(f"Retrieved {len(products)} recent products.")
    return RecentProductsResponse(
        message="Recent products retrieved successfully!",
        products=[ProductResponse.model_validate(p) for p in products],
    )


@app.get(
    "/products/{product_id}",
    response_model=ProductDetailEnvelope,
    responses=ERROR_RESPONSES,
    summary="Retrieve a product by ID",
)
def get_single_product(product_id: int = PRODUCT_ID, db: Session = Depends(get_db)):
    """
    Retrieves a single product with its category resolved.

    - Responds 404 if the product does not exist.
    """
    logger.info(f"Fetching product with ID: {product_id}")
    with handle_failures(db, "Something went wrong while retrieving the product!"):
        product = _find_product(db, product_id, with_category=True)
    return ProductDetailEnvelope(
        message="Product retrieved successfully!",
        product=ProductDetailResponse.model_validate(product),
    )


@app.put(
    "/products/{product_id}",
    response_model=MessageResponse,
    responses=ERROR_RESPONSES,
    summary="Update an existing product",
)
def update_product(
    updated: ProductUpdate,
    product_id: int = PRODUCT_ID,
    db: Session = Depends(get_db),
    asset_store: AzureBlobAssetStore = Depends(get_asset_store),
):
    """
    Updates the supplied fields of a product; absent or null fields are kept.
    Empty or out-of-range values (an empty name, a non-positive rate, an
    empty kilogramOption) are rejected with 400 rather than ignored.

    - A new `image` replaces the hosted one: the old asset is destroyed and
      the new one uploaded before the product is saved.
    - Responds 404 if the product does not exist.
    """
    changes = updated.model_dump(exclude_unset=True, exclude_none=True)
    logger.info(f"Updating product with ID: {product_id} fields: {sorted(changes)}")
    with handle_failures(db, "Something went wrong while updating the product!"):
        product = _find_product(db, product_id)

        if "category" in changes:
            _ensure_category(db, changes["category"])
            product.category_id = changes["category"]

        if "image" in changes:
            # Reject undecodable input before the current image is destroyed
            decode_image(changes["image"])
            asset_store.destroy(product.public_id)
            result = asset_store.upload(changes["image"], folder=PRODUCT_IMAGE_FOLDER)
            product.public_id = result.public_id
            product.url = result.url

        # Iterate over the plain fields that were actually provided
        for field in ("name", "rate", "stocks", "kilogram_option"):
            if field in changes:
                setattr(product, field, changes[field])

        db.commit()
    logger.info(f"Product '{product.name}' (ID: {product_id}) updated successfully.")
    return MessageResponse(message="Product updated successfully!")


@app.delete(
    "/products/{product_id}",
    response_model=MessageResponse,
    responses=ERROR_RESPONSES,
    summary="Delete a product by ID",
)
def delete_product(
    product_id: int = PRODUCT_ID,
    db: Session = Depends(get_db),
    asset_store: AzureBlobAssetStore = Depends(get_asset_store),
):
    """
    Deletes a product and its hosted image.

    - The row removal is flushed first and only committed once the image is
      destroyed, so a failed destroy leaves the product in place.
    - Responds 404 if the product does not exist.
    """
    logger.info(f"Attempting to delete product with ID: {product_id}")
    with handle_failures(db, "Something went wrong while deleting the product!"):
        product = _find_product(db, product_id)
        db.delete(product)
        db.flush()
        asset_store.destroy(product.public_id)
        db.commit()
    logger.info(f"Product (ID: {product_id}) deleted successfully.")
    return MessageResponse(message="Product deleted successfully!")
