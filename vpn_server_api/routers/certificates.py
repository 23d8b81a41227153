import secrets
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session
from vpn_server_api.auth import ADMIN_PORTAL, SERVER_NODE, USER_PORTAL, require_consumer
from vpn_server_api.ca.base import CaError, CertificateExistsError
from vpn_server_api.context import AppContext
from vpn_server_api.database import get_db
from vpn_server_api.repositories import certificate_repository as repo
from vpn_server_api.repositories.user_repository import get_or_create_user
from vpn_server_api.schemas.certificate import (
    AddClientCertificateRequest,
    AddServerCertificateRequest,
    CertificateResponse,
    ClientCertificateResponse,
    DeleteClientCertificateRequest,
    DeleteClientCertificatesOfClientIdRequest,
    ServerCertificateResponse,
    ServerInfoResponse,
)

router = APIRouter(prefix="/api/certificates", tags=["certificates"])

# random CN: 16 bytes, hex encoded
COMMON_NAME_BYTES = 16


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def _ca_failure(e: CaError) -> HTTPException:
    if isinstance(e, CertificateExistsError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


def _certificate_response(cert) -> CertificateResponse:
    return CertificateResponse(
        common_name=cert.common_name,
        user_id=cert.user_id,
        display_name=cert.display_name,
        valid_from=repo.from_db_datetime(cert.valid_from),
        valid_to=repo.from_db_datetime(cert.valid_to),
        client_id=cert.client_id,
        is_revoked=cert.is_revoked,
    )


@router.post("/add_client_certificate", response_model=ClientCertificateResponse, status_code=201)
def add_client_certificate(
    body: AddClientCertificateRequest,
    _consumer: str = Depends(require_consumer(USER_PORTAL)),
    ctx: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
):
    """Issue a client certificate with a random common name and record it for the user."""
    common_name = secrets.token_hex(COMMON_NAME_BYTES)
    try:
        issued = ctx.ca.client_cert(common_name, body.expires_at)
    except CaError as e:
        raise _ca_failure(e)

    get_or_create_user(db, body.user_id)
    repo.add_certificate(
        db,
        user_id=body.user_id,
        common_name=common_name,
        display_name=body.display_name,
        valid_from=issued.valid_from,
        valid_to=issued.valid_to,
        client_id=body.client_id,
    )
    repo.add_user_message(db, body.user_id, f'new certificate "{body.display_name}" generated by user')
    return ClientCertificateResponse(common_name=common_name, **issued.model_dump())


@router.get("/server_info", response_model=ServerInfoResponse)
def server_info(
    _consumer: str = Depends(require_consumer(USER_PORTAL)),
    ctx: AppContext = Depends(get_context),
):
    """CA certificate and tls-auth key, needed to build client configurations."""
    try:
        return ServerInfoResponse(ca=ctx.ca.ca_cert(), ta=ctx.tls_auth.get())
    except CaError as e:
        raise _ca_failure(e)


@router.post("/add_server_certificate", response_model=ServerCertificateResponse, status_code=201)
def add_server_certificate(
    body: AddServerCertificateRequest,
    _consumer: str = Depends(require_consumer(SERVER_NODE)),
    ctx: AppContext = Depends(get_context),
):
    try:
        issued = ctx.ca.server_cert(body.common_name)
        return ServerCertificateResponse(ca=ctx.ca.ca_cert(), ta=ctx.tls_auth.get(), **issued.model_dump())
    except CaError as e:
        raise _ca_failure(e)


@router.post("/delete_client_certificate")
def delete_client_certificate(
    body: DeleteClientCertificateRequest,
    _consumer: str = Depends(require_consumer(USER_PORTAL)),
    db: Session = Depends(get_db),
):
    """
    Revoke a client certificate. An active session using it is disconnected by
    the next disconnect_expired run.
    """
    cert = repo.get_certificate(db, body.common_name)
    if cert is None or cert.is_revoked:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="certificate does not exist")
    repo.add_user_message(db, cert.user_id, f'certificate "{cert.display_name}" deleted by user')
    repo.revoke_certificate(db, body.common_name)
    return {"message": "certificate deleted"}


@router.post("/delete_client_certificates_of_client_id")
def delete_client_certificates_of_client_id(
    body: DeleteClientCertificatesOfClientIdRequest,
    _consumer: str = Depends(require_consumer(USER_PORTAL)),
    db: Session = Depends(get_db),
):
    repo.add_user_message(db, body.user_id, f'certificates for OAuth client "{body.client_id}" deleted')
    common_names = repo.revoke_certificates_of_client_id(db, body.user_id, body.client_id)
    return {"message": "certificates deleted", "common_names": common_names}


@router.get("/client_certificate_list", response_model=list[CertificateResponse])
def client_certificate_list(
    user_id: str,
    _consumer: str = Depends(require_consumer(USER_PORTAL, ADMIN_PORTAL)),
    db: Session = Depends(get_db),
):
    return [_certificate_response(c) for c in repo.get_certificates(db, user_id)]


@router.get("/client_certificate_info", response_model=CertificateResponse | None)
def client_certificate_info(
    common_name: str,
    _consumer: str = Depends(require_consumer(USER_PORTAL, ADMIN_PORTAL)),
    db: Session = Depends(get_db),
):
    """Certificate by common name, null if unknown."""
    cert = repo.get_certificate(db, common_name)
    if cert is None:
        return None
    return _certificate_response(cert)
