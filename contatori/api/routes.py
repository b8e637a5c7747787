import datetime as dt
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
from loguru import logger

from contatori.api.schemas import (
    ConfirmRequest,
    InfoRequest,
    RescheduleRequest,
    SearchRequest,
    ValidateDateRequest,
)
from contatori.api.security import require_api_token
from contatori.domain.exceptions import InvalidRequestError, SchedulingError
from contatori.domain.models import (
    Appointment,
    AvailableDate,
    CapacityExceeded,
    InvalidDate,
    NewAppointment,
    NotFound,
    Sent,
)
from contatori.scheduling.datetime_helpers import date_to_it_long, date_to_it_short
from contatori.scheduling.faq import UNKNOWN_TOPIC_ANSWER, lookup_info
from contatori.scheduling.service import SchedulingService

GENERIC_ERROR = "Errore interno del sistema. Riprovi tra poco."

VOICE_GREETING = """<?xml version="1.0" encoding="UTF-8"?>
<Response>
    <Say voice="Polly.Giorgio" language="it-IT">
        Buongiorno, sono l'assistente per gli appuntamenti di sostituzione contatori.
        Per aiutarla, ho bisogno della matricola del contatore riportata nella comunicazione che le abbiamo inviato.
    </Say>
    <Gather input="speech" speechTimeout="5" action="/process-matricola" method="POST">
        <Say voice="Polly.Giorgio" language="it-IT">
            Mi può fornire la matricola del contatore per favore?
        </Say>
    </Gather>
</Response>"""

public_router = APIRouter()
api_router = APIRouter(prefix="/api", dependencies=[Depends(require_api_token)])


def get_service(request: Request) -> SchedulingService:
    return request.app.state.service


def _failure(status_code: int, error: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error, **extra})


def _invalid_request(exc: InvalidRequestError) -> JSONResponse:
    if exc.field == "matricola":
        return _failure(400, "Matricola richiesta")
    if exc.field == "appointment_id":
        return _failure(400, "Matricola o ID appuntamento richiesti")
    return _failure(400, f"Campo '{exc.field}' non valido")


def _operator_label(appointment: Appointment) -> str:
    return appointment.operator_name or appointment.operator_display_name or "Da assegnare"


def _appointment_payload(appointment: Appointment) -> dict[str, Any]:
    return {
        "id": appointment.appointment_id,
        "nome": appointment.customer_name,
        "indirizzo": appointment.address,
        "comune": appointment.municipality,
        "matricola": appointment.matricola,
        "pdr_pdp": appointment.point_id,
        "data": date_to_it_short(appointment.date),
        "data_iso": appointment.date.isoformat(),
        "fascia_oraria": appointment.time_slot,
        "tipo_attivita": appointment.activity_type,
        "committente": appointment.client,
        "operatore": _operator_label(appointment),
        "telefono": appointment.phone,
        "stato": appointment.status.value if appointment.status else None,
    }


def _date_payload(available: AvailableDate) -> dict[str, str]:
    return {
        "date": available.date.isoformat(),
        "display": available.display,
        "weekday": available.weekday,
    }


@public_router.get("/health")
async def health(service: SchedulingService = Depends(get_service)) -> JSONResponse:
    healthy = await service.health_check()
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "OK" if healthy else "DEGRADED",
            "timestamp": service.now().isoformat(),
            "service": "Agente Telefonico Contatori",
        },
    )


@public_router.get("/")
async def root() -> dict[str, Any]:
    return {
        "message": "Agente Telefonico Contatori - API Online",
        "endpoints": [
            "/health",
            "/api/search-appointment",
            "/api/confirm-appointment",
            "/api/reschedule-appointment",
            "/api/get-current-date",
            "/api/validate-date",
            "/api/get-info",
        ],
    }


@public_router.post("/voice")
async def voice_webhook() -> Response:
    logger.info("Incoming call on /voice")
    return Response(content=VOICE_GREETING, media_type="text/xml")


@api_router.post("/search-appointment")
async def search_appointment(
    body: SearchRequest, service: SchedulingService = Depends(get_service)
) -> JSONResponse:
    try:
        outcome = await service.find_latest_by_matricola(body.matricola or "")
    except InvalidRequestError as exc:
        return _invalid_request(exc)
    except SchedulingError as exc:
        logger.error("Appointment search failed: {}", exc)
        return _failure(500, GENERIC_ERROR)
    except Exception:
        logger.exception("Unexpected error in search_appointment")
        return _failure(500, GENERIC_ERROR)

    if isinstance(outcome, NotFound):
        return JSONResponse(
            {
                "success": False,
                "found": False,
                "message": (
                    f"Non ho trovato alcun appuntamento per la matricola {outcome.matricola}. "
                    "Può verificare che sia corretta? La matricola si trova nella "
                    "comunicazione che le abbiamo inviato."
                ),
            }
        )

    activity = outcome.activity_type or "la sostituzione del contatore"
    return JSONResponse(
        {
            "success": True,
            "found": True,
            "appointment": _appointment_payload(outcome),
            "message": (
                f"Perfetto! Ho trovato il suo appuntamento per {activity} presso "
                f"{outcome.address}, {outcome.municipality}. L'appuntamento è programmato per "
                f"{date_to_it_short(outcome.date)} nella fascia oraria {outcome.time_slot}."
            ),
        }
    )


@api_router.post("/confirm-appointment")
async def confirm_appointment(
    body: ConfirmRequest, service: SchedulingService = Depends(get_service)
) -> JSONResponse:
    try:
        outcome = await service.confirm_appointment(
            appointment_id=body.appointment_id, matricola=body.matricola
        )
    except InvalidRequestError as exc:
        return _invalid_request(exc)
    except SchedulingError as exc:
        logger.error("Appointment confirmation failed: {}", exc)
        return _failure(500, "Errore durante la conferma. Riprovi tra poco.")
    except Exception:
        logger.exception("Unexpected error in confirm_appointment")
        return _failure(500, "Errore durante la conferma. Riprovi tra poco.")

    if isinstance(outcome, NotFound):
        return _failure(404, "Appuntamento non trovato")

    appointment = outcome.appointment
    operator_note = (
        " Il tecnico incaricato è stato avvisato." if isinstance(outcome.notification, Sent) else ""
    )
    return JSONResponse(
        {
            "success": True,
            "operator_notified": isinstance(outcome.notification, Sent),
            "message": (
                f"Perfetto! Il suo appuntamento per {date_to_it_short(appointment.date)} nella "
                f"fascia oraria {appointment.time_slot} è stato confermato.{operator_note} "
                "I nostri tecnici si presenteranno nell'orario concordato. Ha altre domande?"
            ),
        }
    )


@api_router.post("/reschedule-appointment")
async def reschedule_appointment(
    body: RescheduleRequest, service: SchedulingService = Depends(get_service)
) -> JSONResponse:
    try:
        outcome = await service.reschedule_appointment(
            body.new_date,
            body.new_time_slot,
            appointment_id=body.appointment_id,
            matricola=body.matricola,
            reason=body.reason,
        )
    except InvalidRequestError as exc:
        return _invalid_request(exc)
    except SchedulingError as exc:
        logger.error("Appointment reschedule failed: {}", exc)
        return _failure(500, "Errore durante la riprogrammazione. Riprovi tra poco.")
    except Exception:
        logger.exception("Unexpected error in reschedule_appointment")
        return _failure(500, "Errore durante la riprogrammazione. Riprovi tra poco.")

    if isinstance(outcome, NotFound):
        return _failure(404, "Appuntamento non trovato")

    if isinstance(outcome, CapacityExceeded):
        error = "La fascia oraria richiesta è già piena. Le propongo alternative disponibili."
        return JSONResponse(
            {
                "success": False,
                "error": error,
                "message": error,
                "alternatives": [
                    {"date": alt.date.isoformat(), "time": alt.time} for alt in outcome.alternatives
                ],
            }
        )

    appointment = outcome.appointment
    operator_note = (
        " Il tecnico è stato informato del cambio." if isinstance(outcome.notification, Sent) else ""
    )
    return JSONResponse(
        {
            "success": True,
            "operator_notified": isinstance(outcome.notification, Sent),
            "new_date": appointment.date.isoformat(),
            "new_time_slot": appointment.time_slot,
            "message": (
                f"Perfetto! Ho spostato il suo appuntamento al {date_to_it_short(appointment.date)} "
                f"nella fascia oraria {appointment.time_slot}.{operator_note} Desidera altro?"
            ),
        }
    )


@api_router.api_route("/get-current-date", methods=["GET", "POST"])
async def get_current_date(service: SchedulingService = Depends(get_service)) -> dict[str, Any]:
    info = service.get_current_date_info()
    return {
        "success": True,
        "current_date": info.current_date.isoformat(),
        "current_date_display": info.display,
        "available_dates": [_date_payload(d) for d in info.available_dates],
        "time_slots": list(info.time_slots),
    }


@api_router.post("/validate-date")
async def validate_date(
    body: ValidateDateRequest, service: SchedulingService = Depends(get_service)
) -> dict[str, Any]:
    outcome = service.validate_proposed_date(body.proposed_date, body.time_slot)

    if isinstance(outcome, InvalidDate):
        suggestions = ", ".join(d.display for d in outcome.suggested_dates)
        if outcome.reason == "past_date":
            lead = "La data indicata è già passata o è oggi."
        else:
            lead = "La domenica non effettuiamo interventi."
        return {
            "success": True,
            "is_valid": False,
            "reason": outcome.reason,
            "suggested_dates": [_date_payload(d) for d in outcome.suggested_dates],
            "message": f"{lead} Posso proporle queste date: {suggestions}.",
        }

    return {
        "success": True,
        "is_valid": True,
        "date": outcome.date.isoformat(),
        "date_display": date_to_it_long(outcome.date),
        "time_slots": list(outcome.time_slots),
        "message": (
            f"La data {date_to_it_long(outcome.date)} è disponibile. Le fasce orarie sono: "
            f"{', '.join(outcome.time_slots)}."
        ),
    }


@api_router.post("/get-info")
async def get_info(body: InfoRequest) -> dict[str, Any]:
    answer = lookup_info(body.topic)
    return {
        "success": True,
        "info": answer
        or "Informazione non disponibile. Può contattare il nostro ufficio per maggiori dettagli.",
        "message": answer or UNKNOWN_TOPIC_ANSWER,
    }


@api_router.get("/appointments")
async def list_appointments(service: SchedulingService = Depends(get_service)) -> JSONResponse:
    try:
        appointments = await service.list_recent_appointments()
    except SchedulingError as exc:
        logger.error("Appointment listing failed: {}", exc)
        return _failure(500, GENERIC_ERROR)

    return JSONResponse(
        {
            "success": True,
            "appointments": [_appointment_payload(a) for a in appointments],
            "count": len(appointments),
        }
    )


TEST_APPOINTMENT = NewAppointment(
    matricola="TEST123456",
    customer_name="Mario Rossi Test",
    address="Via Roma 123",
    municipality="Milano",
    point_id="PDR123456",
    date=dt.date(2024, 7, 25),
    time_slot="09:00-12:00",
    phone="3331234567",
)


@api_router.post("/test-appointment")
async def create_test_appointment(
    request: Request, service: SchedulingService = Depends(get_service)
) -> JSONResponse:
    if not request.app.state.config.api.enable_test_endpoints:
        return _failure(404, "Not Found")

    try:
        appointment = await service.create_appointment(TEST_APPOINTMENT)
    except SchedulingError as exc:
        logger.error("Test appointment insert failed: {}", exc)
        return _failure(500, GENERIC_ERROR)

    return JSONResponse(
        {
            "success": True,
            "message": "Appuntamento di test creato",
            "appointment": _appointment_payload(appointment),
        }
    )
