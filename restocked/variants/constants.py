"""
Shared limits and vocabularies for variant discovery.
"""

# Hard cap on variants per product; combination expansion stops here
MAX_VARIANTS = 100

# Structured-data traversal depth
MAX_DEPTH = 10

# Keys whose values usually hold variant arrays
VARIANT_KEYS = [
    "variants",
    "variant",
    "choices",
    "options",
    "attributes",
    "attribute_values",
    "product_options",
    "product_variants",
    "offers",
    "itemoffered",
]

# Fields that are metadata, never attributes
EXCLUDED_ATTRIBUTE_KEYS = {
    "id",
    "sku",
    "price",
    "availability",
    "available",
    "in_stock",
    "stock",
    "quantity",
    "url",
    "link",
    "image",
    "images",
    "title",
    "name",
    "description",
    "metadata",
    "meta",
    "type",
    "context",
    "product_id",
    "variant_id",
    "productid",
    "variantid",
}

# Attribute-like key fragments
ATTRIBUTE_PATTERNS = [
    "size",
    "color",
    "colour",
    "length",
    "style",
    "material",
    "waist",
    "inseam",
    "width",
    "height",
    "fit",
    "flavor",
    "flavour",
    "pattern",
    "finish",
    "type",
    "variant_name",
    "option",
    "attribute",
]

# Identifier fields, in lookup order
ID_FIELDS = ["id", "sku", "variant_id", "variantId", "product_id", "productId"]

# Form controls that look like selectors but never describe a variant
NON_VARIANT_CONTROLS = {
    "id", "quantity", "qty", "country", "currency", "locale", "language",
    "sort", "sort_by", "sortby", "shipping", "region", "search", "q",
}

PLACEHOLDER_VALUES = {"select", "choose", "select one", "choose one", "pick one", "please select", "-", "--"}

# Keys holding media objects; the structured walker never descends into them
MEDIA_KEYS = {
    "media",
    "images",
    "image",
    "featured_image",
    "featured_media",
    "preview_image",
    "thumbnail",
    "thumbnails",
    "videos",
    "video",
    "gallery",
}

# Key segments that mark a field as media metadata (media_type, image_width)
MEDIA_SEGMENTS = {"media", "image", "img", "video", "mime", "thumbnail", "preview", "alt", "aspect"}
