"""
Attendance Notification Bot for Microsoft Teams

Main aiohttp application entry point: the Bot Framework webhook, the
vacation calendar API and the vacation approval webhook.
"""

import hmac
import json
import logging
import sys

from aiohttp import web
from aiohttp.web import Request, Response
from botbuilder.schema import Activity
from pydantic import ValidationError

from attendance_bot.approvals import VacationApproval, process_vacation_approval
from attendance_bot.bot import AttendanceBot, create_adapter
from attendance_bot.config import configure_logging, get_settings
from attendance_bot.exceptions import AttendanceBotError
from attendance_bot.jobs import build_job_context
from attendance_bot.storage import ConversationStore, IdentityMap, TableStore
from attendance_bot.storage.conversations import TABLE_NAME as CONVERSATION_TABLE
from attendance_bot.storage.identity_map import TABLE_NAME as EMPLOYEE_MAP_TABLE
from attendance_bot.vacations import (
    InvalidRangeError,
    calendar_payload,
    group_by_date,
    names_by_employee_number,
    parse_calendar_range,
)

logger = logging.getLogger(__name__)


def json_error(status: int, message: str) -> Response:
    return web.json_response({"success": False, "error": message}, status=status)


class Application:
    """Main application class."""

    def __init__(self, settings=None, context=None):
        """
        Initialize the application.

        Args:
            settings: Settings to use; defaults to the cached settings
            context: Prebuilt job context (Flex client and stores)
        """
        self.settings = settings or get_settings()
        configure_logging(self.settings.log_level)

        self.adapter = create_adapter(self.settings)

        # Error handler
        async def on_error(context, error):
            logger.error(f"Bot error: {error}", exc_info=True)
            await context.send_activity(
                "Sorry, something went wrong. Please try again later."
            )

        self.adapter.on_turn_error = on_error

        self.context = context or build_job_context(self.settings)
        connection_string = self.settings.require_storage_connection_string()

        self.tables = [
            TableStore(connection_string, CONVERSATION_TABLE),
            TableStore(connection_string, EMPLOYEE_MAP_TABLE),
        ]
        self.bot = AttendanceBot(
            conversations=ConversationStore(self.tables[0]),
            identity_map=IdentityMap(self.tables[1]),
        )

        logger.info("Application initialized successfully")

    async def messages_handler(self, request: Request) -> Response:
        """
        Handle incoming activities from Bot Framework.

        This is the webhook endpoint that receives activities from
        Microsoft Teams.
        """
        if "application/json" not in request.headers.get("Content-Type", ""):
            return json_error(415, "Content-Type must be application/json")

        try:
            body = await request.json()
        except json.JSONDecodeError:
            return json_error(400, "Malformed JSON body")

        activity = Activity().deserialize(body)
        auth_header = request.headers.get("Authorization", "")

        try:
            response = await self.adapter.process_activity(
                activity, auth_header, self.bot.on_turn
            )

            if response:
                return web.json_response(data=response.body, status=response.status)

            return Response(status=201)

        except PermissionError as e:
            logger.warning(f"Rejected activity: {e}")
            return json_error(401, "Unauthorized")
        except Exception as e:
            logger.error(f"Error processing activity: {e}", exc_info=True)
            return json_error(500, "Internal error")

    async def vacation_calendar_handler(self, request: Request) -> Response:
        """
        Vacationers per date for a month or an explicit range.

        Query: ``year``/``month`` or ``startDate``/``endDate`` (YYYY-MM-DD).
        """
        try:
            start, end = parse_calendar_range(request.query, self.context.today())
        except InvalidRangeError as e:
            return json_error(400, str(e))

        try:
            mapping = await self.context.identity_map.resolve_all()
            subject_ids = IdentityMap.subject_ids_of(mapping)
            vacations = []
            if subject_ids:
                vacations = await self.context.flex.get_vacations_in_range(
                    start, end, subject_ids
                )
        except AttendanceBotError as e:
            logger.error(f"Vacation calendar failed: {e}", exc_info=True)
            return json_error(500, str(e))
        except Exception as e:
            logger.error(f"Vacation calendar failed: {e}", exc_info=True)
            return json_error(500, "Internal error")

        grouped = group_by_date(vacations, start, end, names_by_employee_number(mapping))
        return web.json_response(calendar_payload(grouped, start, end))

    def _webhook_authorized(self, request: Request) -> bool:
        """Check the webhook key when one is configured."""
        if self.settings.webhook_api_key is None:
            return True
        expected = self.settings.webhook_api_key.get_secret_value()
        supplied = request.headers.get("x-functions-key") or request.query.get("code", "")
        return hmac.compare_digest(supplied.encode(), expected.encode())

    async def vacation_approved_handler(self, request: Request) -> Response:
        """
        Webhook called by HR when a vacation request is approved.

        Adds the vacation to the employee's and the team's calendars and
        confirms it to the employee in Teams.
        """
        if not self._webhook_authorized(request):
            return json_error(401, "Unauthorized")

        try:
            body = await request.json()
        except json.JSONDecodeError:
            return json_error(400, "Malformed JSON body")

        try:
            approval = VacationApproval.model_validate(body)
        except ValidationError as e:
            fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"])
            return json_error(
                400,
                "Missing or invalid fields (employeeNumber, employeeName, startDate, endDate)"
                + (f": {fields}" if fields else ""),
            )

        try:
            result = await process_vacation_approval(
                approval,
                self.context.identity_map,
                dispatcher=self.context.dispatcher,
                mailer=self.context.mailer,
                team_calendar_owner=self.settings.team_calendar_owner,
            )
        except Exception as e:
            logger.error(f"Vacation approval failed: {e}", exc_info=True)
            return json_error(500, "Internal error")

        return web.json_response(
            {
                "success": True,
                "message": "Vacation approval processed",
                "data": {
                    "employeeName": approval.employee_name,
                    "vacationType": approval.type_label,
                    "period": approval.period,
                    **result.to_dict(),
                },
            }
        )

    async def health_handler(self, request: Request) -> Response:
        """Health check endpoint."""
        return web.json_response({"status": "healthy", "service": "attendance-notify-bot"})

    async def on_cleanup(self, app: web.Application) -> None:
        await self.context.close()
        for table in self.tables:
            await table.close()

    def create_app(self) -> web.Application:
        """Create the aiohttp web application."""
        app = web.Application()

        # Add routes
        app.router.add_post("/api/messages", self.messages_handler)
        app.router.add_get("/api/vacation/calendar", self.vacation_calendar_handler)
        app.router.add_post("/api/vacation/approved", self.vacation_approved_handler)
        app.router.add_get("/health", self.health_handler)
        app.router.add_get("/", self.health_handler)

        app.on_cleanup.append(self.on_cleanup)
        return app


def main():
    """Main entry point."""
    try:
        settings = get_settings()
        application = Application(settings)
        app = application.create_app()

        logger.info(f"Starting attendance bot on {settings.host}:{settings.port}")

        web.run_app(
            app,
            host=settings.host,
            port=settings.port,
        )

    except Exception as e:
        logger.error(f"Failed to start application: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
