# backend/core/serializers.py
from rest_framework import serializers

from core.models import Product, Scan


class ScanUploadRequest(serializers.Serializer):
    image = serializers.ImageField(required=False, allow_null=True)
    barcode = serializers.CharField(required=False, allow_blank=True, max_length=50)
    store_image = serializers.BooleanField(required=False, default=False)


class ScanUploadResponse(serializers.Serializer):
    id = serializers.CharField()
    status = serializers.CharField()
    image_url = serializers.CharField(allow_null=True)
    message = serializers.CharField()
    created_at = serializers.DateTimeField(allow_null=True)


class ProductSerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = [
            "id", "barcode", "name", "brand", "image_url", "source", "nutrients",
            "serving_size", "nutri_score", "nutri_score_value", "highlights", "insights",
        ]


class ScanSerializer(serializers.ModelSerializer):
    """
    Scan as the client sees it. Nutrients and serving size always come from
    the linked product; highlights/insights prefer the scan's own snapshot.
    """
    image_url = serializers.SerializerMethodField()
    nutrients = serializers.SerializerMethodField()
    serving_size = serializers.SerializerMethodField()
    highlights = serializers.SerializerMethodField()
    insights = serializers.SerializerMethodField()
    nutri_score = serializers.SerializerMethodField()
    nutri_score_value = serializers.SerializerMethodField()

    class Meta:
        model = Scan
        fields = [
            "id", "user_id", "barcode", "status", "image_url", "serving_size",
            "nutri_score", "nutri_score_value", "nutrients", "highlights", "insights",
            "processing_time_ms", "error_message", "ocr_raw", "created_at",
        ]

    def get_image_url(self, scan):
        pipeline = self.context.get("pipeline")
        return pipeline.image_url_for(scan) if pipeline else None

    def get_nutrients(self, scan):
        return scan.product.nutrients if scan.product else None

    def get_serving_size(self, scan):
        return scan.product.serving_size if scan.product else None

    def get_highlights(self, scan):
        if scan.highlights is not None:
            return scan.highlights
        return scan.product.highlights if scan.product else None

    def get_insights(self, scan):
        if scan.insights is not None:
            return scan.insights
        return scan.product.insights if scan.product else None

    def get_nutri_score(self, scan):
        if scan.nutri_score:
            return scan.nutri_score
        return scan.product.nutri_score if scan.product else None

    def get_nutri_score_value(self, scan):
        if scan.nutri_score_value is not None:
            return scan.nutri_score_value
        return scan.product.nutri_score_value if scan.product else None


class PaginatedScansSerializer(serializers.Serializer):
    scans = serializers.SerializerMethodField()
    total = serializers.IntegerField()
    page = serializers.IntegerField()
    limit = serializers.IntegerField()
    total_pages = serializers.IntegerField()

    def get_scans(self, page):
        return ScanSerializer(page.scans, many=True, context=self.context).data


class CompareRequest(serializers.Serializer):
    product_a = serializers.CharField(max_length=100)
    product_b = serializers.CharField(max_length=100)


class ProductSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Product
        fields = ["id", "name", "barcode", "nutri_score", "image_url"]


class NutrientComparisonSerializer(serializers.Serializer):
    name = serializers.CharField()
    unit = serializers.CharField()
    value_a = serializers.FloatField(allow_null=True)
    value_b = serializers.FloatField(allow_null=True)
    difference = serializers.FloatField(allow_null=True)
    winner = serializers.CharField()
    note = serializers.CharField(allow_blank=True)


class ProductComparisonSerializer(serializers.Serializer):
    product_a = ProductSummarySerializer()
    product_b = ProductSummarySerializer()
    comparisons = NutrientComparisonSerializer(many=True)
    winner = serializers.CharField()
    verdict = serializers.CharField()
