"""Hosted checkout redirect backed by the Polar API."""
from typing import Optional

import requests
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, RedirectResponse

from apps.api.deps import get_app_settings
from libs.config import CheckoutSettings, Settings
from libs.errors import CheckoutError
from libs.observability import get_logger

logger = get_logger(__name__)

router = APIRouter()

REQUEST_TIMEOUT = 10


def create_checkout(conf: CheckoutSettings, products: Optional[str] = None,
                    customer_email: Optional[str] = None) -> str:
    """Create a checkout session and return its hosted URL.

    ``success_url`` is passed through untouched so the provider can fill the
    ``{CHECKOUT_ID}`` placeholder.
    """
    product_ids = [p for p in (products or conf.product_id or "").split(",") if p]
    payload = {"products": product_ids}
    if conf.success_url:
        payload["success_url"] = conf.success_url
    if customer_email:
        payload["customer_email"] = customer_email

    try:
        response = requests.post(
            f"{conf.api_base.rstrip('/')}/checkouts/",
            json=payload,
            headers={"Authorization": f"Bearer {conf.access_token}"},
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        url = response.json().get("url")
    except (requests.RequestException, ValueError) as e:
        raise CheckoutError(f"Checkout creation failed: {e}") from e
    if not url:
        raise CheckoutError("Checkout response did not include a url")
    return url


@router.get("/api/checkout")
def checkout(products: Optional[str] = None, customer_email: Optional[str] = None,
             settings: Settings = Depends(get_app_settings)):
    conf = settings.checkout
    if not conf.access_token:
        logger.error("Checkout requested but POLAR_ACCESS_TOKEN is not set")
        return JSONResponse({"error": "Checkout is not configured"}, status_code=500)
    try:
        url = create_checkout(conf, products=products, customer_email=customer_email)
    except CheckoutError as e:
        logger.error("Checkout failed", error=str(e))
        return JSONResponse({"error": "Failed to create checkout"}, status_code=502)
    return RedirectResponse(url, status_code=302)
