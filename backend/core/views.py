# backend/core/views.py
import logging

from django.apps import apps
from rest_framework import status
from rest_framework.decorators import api_view, parser_classes
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response

from core.exceptions import InvalidInput, LookupFailed, NotFound, NutriSnapError, PermissionDenied
from core.serializers import (
    CompareRequest,
    PaginatedScansSerializer,
    ProductComparisonSerializer,
    ProductSerializer,
    ScanSerializer,
    ScanUploadRequest,
    ScanUploadResponse,
)

logger = logging.getLogger(__name__)

# Identity lives in front of this service; it forwards the caller's id here.
USER_HEADER = "X-User-Id"

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

# -------- utilities -----------------------------------------------------------


def _pipeline():
    return apps.get_app_config("core").pipeline


def _user_id(request):
    return request.headers.get(USER_HEADER) or None


def _error(exc):
    if isinstance(exc, InvalidInput):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, PermissionDenied):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, NotFound):
        code = status.HTTP_404_NOT_FOUND
    else:
        code = status.HTTP_502_BAD_GATEWAY
    return Response({"detail": str(exc)}, status=code)


def _int_param(request, name, default):
    raw = request.query_params.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidInput(f"{name} must be an integer")

# -------- views ---------------------------------------------------------------


@api_view(["GET"])
def ping(_request):
    return Response({"app": "nutrisnap", "ok": True})


@api_view(["POST"])
@parser_classes([MultiPartParser, FormParser])
def create_scan(request):
    """
    POST /api/v1/scans/
    form-data: image=<file>, barcode=<str>, store_image=<bool>
    Returns right away; OCR scans finish in the background.
    """
    form = ScanUploadRequest(data=request.data)
    if not form.is_valid():
        return Response({"detail": form.errors}, status=status.HTTP_400_BAD_REQUEST)

    image = form.validated_data.get("image")
    if image is not None:
        image.seek(0)  # the image field validator reads it
    try:
        ack = _pipeline().create_scan(
            user_id=_user_id(request),
            file=image,
            filename=getattr(image, "name", "") or "",
            size=getattr(image, "size", None),
            content_type=getattr(image, "content_type", None),
            store_image=form.validated_data.get("store_image", False),
            barcode=form.validated_data.get("barcode"),
        )
    except NutriSnapError as e:
        return _error(e)

    return Response(ScanUploadResponse(ack).data, status=status.HTTP_201_CREATED)


@api_view(["GET", "DELETE"])
def scan_detail(request, scan_id: str):
    pipeline = _pipeline()
    try:
        if request.method == "DELETE":
            pipeline.delete_scan(scan_id, _user_id(request))
            return Response(status=status.HTTP_204_NO_CONTENT)
        scan = pipeline.get_scan(scan_id)
    except (NotFound, PermissionDenied, InvalidInput) as e:
        return _error(e)
    return Response(ScanSerializer(scan, context={"pipeline": pipeline}).data)


@api_view(["GET"])
def scan_image(_request, scan_id: str):
    try:
        url = _pipeline().get_scan_image_url(scan_id)
    except NotFound as e:
        return _error(e)
    return Response({"image_url": url})


@api_view(["GET"])
def scan_history(request):
    """GET /api/v1/history/?page=1&limit=10 for the calling user."""
    pipeline = _pipeline()
    try:
        page = _int_param(request, "page", 1)
        limit = min(_int_param(request, "limit", DEFAULT_PAGE_SIZE), MAX_PAGE_SIZE)
        result = pipeline.get_user_scans(_user_id(request), page, limit)
    except InvalidInput as e:
        return _error(e)
    return Response(PaginatedScansSerializer(result, context={"pipeline": pipeline}).data)


@api_view(["GET"])
@parser_classes([JSONParser])
def product_lookup(_request, barcode: str):
    """
    GET /api/v1/products/<barcode>/
    Local product table first, then OpenFoodFacts.
    """
    try:
        product = _pipeline().product_lookup.get_by_barcode(barcode)
    except NotFound:
        return Response({"detail": "Not found"}, status=status.HTTP_404_NOT_FOUND)
    except LookupFailed as e:
        logger.warning("Product lookup for %s failed: %s", barcode, e)
        return _error(e)
    return Response(ProductSerializer(product).data, status=status.HTTP_200_OK)


@api_view(["POST"])
@parser_classes([JSONParser])
def compare_products(request):
    """
    POST /api/v1/compare/
    json: {"product_a": <barcode or scan id>, "product_b": <barcode or scan id>}
    """
    form = CompareRequest(data=request.data)
    if not form.is_valid():
        return Response({"detail": form.errors}, status=status.HTTP_400_BAD_REQUEST)
    try:
        result = apps.get_app_config("core").comparer.compare(
            form.validated_data["product_a"], form.validated_data["product_b"]
        )
    except (InvalidInput, NotFound) as e:
        return _error(e)
    return Response(ProductComparisonSerializer(result).data)
