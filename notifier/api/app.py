"""HTTP surface: unsubscribe links, tracking callbacks and health.

Handlers are plain ``def`` functions; FastAPI runs them in its thread pool,
which suits the synchronous SQLAlchemy sessions underneath.
"""

import base64
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import RedirectResponse, Response
from pydantic import BaseModel

from notifier import __version__
from notifier.analytics.service import AnalyticsService
from notifier.analytics.tracking import TrackingService
from notifier.logging import get_logger
from notifier.notifications.models import RecipientError
from notifier.notifications.service import NotificationService
from notifier.persistence.database import Database
from notifier.preferences.exceptions import InvalidUnsubscribeToken, PreferenceError
from notifier.utils.timestamps import parse_iso_datetime

logger = get_logger(__name__, component="api")

# 1x1 transparent GIF
PIXEL = base64.b64decode("R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7")
NO_CACHE = {"Cache-Control": "no-store, no-cache, must-revalidate", "Pragma": "no-cache"}


class BounceReport(BaseModel):
    reason: Optional[str] = None


def create_app(
    database: Database,
    notifications: NotificationService,
    tracking: TrackingService,
    analytics: AnalyticsService,
    base_url: str,
) -> FastAPI:
    """Build the FastAPI application around already-constructed services.

    Args:
        base_url: Public base URL; click redirects are only followed to
            URLs under it
    """
    app = FastAPI(
        title="Notification Pipeline",
        description="Unsubscribe and delivery tracking endpoints",
        version=__version__,
    )

    @app.get("/health")
    def health():
        healthy = database.ping()
        body = {
            "status": "healthy" if healthy else "degraded",
            "service": "notification-pipeline",
            "database": "ok" if healthy else "unreachable",
        }
        if not healthy:
            raise HTTPException(status_code=503, detail=body)
        return body

    @app.get("/api/notifications/unsubscribe")
    def unsubscribe(token: str = Query(...), category: Optional[str] = Query(None)):
        try:
            record = notifications.unsubscribe(token, category)
        except InvalidUnsubscribeToken as e:
            logger.info(f"Rejected unsubscribe token: {e}", extra={"event": "api.unsubscribe.invalid"})
            raise HTTPException(status_code=400, detail="Invalid unsubscribe link")
        except RecipientError:
            raise HTTPException(status_code=404, detail="User not found")
        except PreferenceError as e:
            raise HTTPException(status_code=400, detail=str(e))

        return {
            "success": True,
            "message": (
                f"Successfully unsubscribed from {category} notifications"
                if category
                else "Successfully unsubscribed from all non-critical notifications"
            ),
            "preferences": record.model_dump(mode="json", exclude={"created_at", "updated_at"}),
        }

    @app.get("/api/notifications/track/open/{tracking_id}")
    def track_open(tracking_id: str):
        tracking.record_open(tracking_id)
        # The pixel is served whether or not the id matched
        return Response(content=PIXEL, media_type="image/gif", headers=NO_CACHE)

    @app.get("/api/notifications/track/click/{tracking_id}")
    def track_click(tracking_id: str, url: str = Query(...)):
        if not (url == base_url or url.startswith(base_url + "/")):
            logger.warning(
                "Refused click redirect outside the base URL",
                extra={"event": "api.click.refused", "tracking_id": tracking_id},
            )
            raise HTTPException(status_code=400, detail="Redirect target not allowed")
        tracking.record_click(tracking_id)
        return RedirectResponse(url=url, status_code=302)

    @app.post("/api/notifications/track/bounce/{tracking_id}")
    def track_bounce(tracking_id: str, report: Optional[BounceReport] = None):
        entry = tracking.record_bounce(tracking_id, report.reason if report else None)
        if entry is None:
            raise HTTPException(status_code=404, detail="Unknown message")
        return {"success": True, "message_id": entry.message_id, "status": entry.status}

    @app.get("/api/notifications/stats")
    def stats(start: Optional[str] = Query(None), end: Optional[str] = Query(None)):
        window = {}
        for name, value in (("start", start), ("end", end)):
            if value is None:
                continue
            window[name] = parse_iso_datetime(value)
            if window[name] is None:
                raise HTTPException(status_code=400, detail=f"Invalid {name} timestamp: {value}")

        return {
            "queue": notifications.queue_stats(),
            "delivery": analytics.delivery_stats(**window),
            "by_category": analytics.by_category(**window),
        }

    return app
