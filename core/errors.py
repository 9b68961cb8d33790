"""
core/errors.py -- Service error taxonomy.

Every failure that crosses a layer boundary is a ServiceError carrying an
ErrorCode: a stable numeric code, the HTTP status the transport layer should
answer with, and a bilingual message (Indonesian primary, English
translation). The free-text cause is for logs only and is echoed in
transaction_info, never used for control flow.

Subclasses exist so callers can catch by category:

  BadRequest        -- malformed input / validation
  NotAuthorized     -- credential or membership failure during token issuance
  Forbidden         -- valid token, insufficient scope
  NotFound          -- entity absent
  PasswordMismatch  -- the one specific failure the verification flow reports
  StoreError        -- transaction begin/commit/rollback/insert/update/delete/get
  CacheError        -- cache backend or (de)serialization failure (not a miss)
  CacheRefreshError -- the store read succeeded but warming the cache failed;
                       the fetched value rides along in .value

Layer rule: core/ imports nothing from the rest of the project.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ErrorCode:
    code: int
    status_code: int
    message: str
    translation: str


CODE_BAD_REQUEST = 40000
CODE_PSQL_TRANSACTION = 40001
CODE_PSQL_COMMIT = 40002
CODE_PSQL_ROLLBACK = 40003
CODE_PSQL_INSERT = 40004
CODE_PSQL_UPDATE = 40005
CODE_PSQL_DELETE = 40006
CODE_PSQL_GET = 40007
CODE_INVALID_EMPTY_NAME = 40008
CODE_INVALID_EMPTY_EMAIL = 40009
CODE_INVALID_EMAIL_FORMAT = 40010
CODE_INVALID_EMPTY_PASSWORD = 40011
CODE_INVALID_MINIMUM_PASSWORD = 40012
CODE_INVALID_MAXIMUM_PASSWORD = 40013
CODE_INVALID_PASSWORD_CONFIRMATION = 40014
CODE_INVALID_PASSWORD_NOT_MATCH = 40015
CODE_INVALID_SCOPE = 40016
CODE_INVALID_CLIENT_ID_CLIENT_SECRET = 40017
CODE_CACHE = 50001
CODE_NOT_AUTHORIZED = 401000
CODE_FORBIDDEN = 403000
CODE_NOT_FOUND = 404000

_CREATE_FAILED = ("Terdapat kesalahan dalam pembuatan data!", "There was an error in creating the data")

ERROR_CODES: dict[int, ErrorCode] = {
    CODE_BAD_REQUEST: ErrorCode(
        CODE_BAD_REQUEST,
        400,
        "Kesalahan input. Silakan cek kembali masukan anda!",
        "Invalid input. Please validate your input!",
    ),
    CODE_PSQL_TRANSACTION: ErrorCode(CODE_PSQL_TRANSACTION, 400, *_CREATE_FAILED),
    CODE_PSQL_COMMIT: ErrorCode(CODE_PSQL_COMMIT, 400, *_CREATE_FAILED),
    CODE_PSQL_ROLLBACK: ErrorCode(CODE_PSQL_ROLLBACK, 400, *_CREATE_FAILED),
    CODE_PSQL_INSERT: ErrorCode(CODE_PSQL_INSERT, 400, *_CREATE_FAILED),
    CODE_PSQL_UPDATE: ErrorCode(
        CODE_PSQL_UPDATE,
        400,
        "Terdapat kesalahan dalam mengubah data!",
        "There was an error in updating the data",
    ),
    CODE_PSQL_DELETE: ErrorCode(
        CODE_PSQL_DELETE,
        400,
        "Terdapat kesalahan dalam menghapus data!",
        "There was an error in deleting the data",
    ),
    CODE_PSQL_GET: ErrorCode(
        CODE_PSQL_GET,
        400,
        "Terdapat kesalahan dalam pengambilan data!",
        "There was an error in get data!",
    ),
    CODE_INVALID_EMPTY_NAME: ErrorCode(
        CODE_INVALID_EMPTY_NAME, 400, "Nama tidak boleh kosong!", "Name should not be empty!"
    ),
    CODE_INVALID_EMPTY_EMAIL: ErrorCode(
        CODE_INVALID_EMPTY_EMAIL, 400, "Email tidak boleh kosong!", "Email should not be empty!"
    ),
    CODE_INVALID_EMAIL_FORMAT: ErrorCode(CODE_INVALID_EMAIL_FORMAT, 400, "Format email salah!", "Wrong email format!"),
    CODE_INVALID_EMPTY_PASSWORD: ErrorCode(
        CODE_INVALID_EMPTY_PASSWORD, 400, "Kata sandi tidak boleh kosong!", "Password should not be empty!"
    ),
    CODE_INVALID_MINIMUM_PASSWORD: ErrorCode(
        CODE_INVALID_MINIMUM_PASSWORD, 400, "Kata sandi minimal 5 karakter!", "Minimum password is 5 character!"
    ),
    CODE_INVALID_MAXIMUM_PASSWORD: ErrorCode(
        CODE_INVALID_MAXIMUM_PASSWORD, 400, "Kata sandi maksimal 8 karakter!", "Maximum password is 8 character!"
    ),
    CODE_INVALID_PASSWORD_CONFIRMATION: ErrorCode(
        CODE_INVALID_PASSWORD_CONFIRMATION,
        400,
        "Kata sandi dan konfirmasi kata sandi tidak sama!",
        "Password and password confirmation doesn't match!",
    ),
    CODE_INVALID_PASSWORD_NOT_MATCH: ErrorCode(
        CODE_INVALID_PASSWORD_NOT_MATCH, 401, "Kata sandi salah!", "Wrong password!"
    ),
    CODE_INVALID_SCOPE: ErrorCode(CODE_INVALID_SCOPE, 400, "Scope tidak valid", "Invalid scope!"),
    CODE_INVALID_CLIENT_ID_CLIENT_SECRET: ErrorCode(
        CODE_INVALID_CLIENT_ID_CLIENT_SECRET,
        400,
        "Client ID/Client Secret harus diisi!",
        "Client ID/Client Secret should not be empty",
    ),
    CODE_CACHE: ErrorCode(
        CODE_CACHE,
        500,
        "Terdapat kesalahan pada cache! Silakan coba kembali!",
        "There was an error in the cache! Please retry!",
    ),
    CODE_NOT_AUTHORIZED: ErrorCode(
        CODE_NOT_AUTHORIZED,
        401,
        "Akses tidak diijinkan! Silakan login kembali!",
        "Access not authorized! Please login again!",
    ),
    CODE_FORBIDDEN: ErrorCode(
        CODE_FORBIDDEN,
        403,
        "Akses tidak diijinkan untuk scope ini!",
        "Access is not allowed for this scope!",
    ),
    CODE_NOT_FOUND: ErrorCode(CODE_NOT_FOUND, 404, "Data tidak ditemukan!", "Data not found!"),
}


class ServiceError(Exception):
    """Base class for every error the service reports to a caller.

    default_code is used when the raiser does not pick a more specific code
    (e.g. BadRequest("...") vs BadRequest("...", code=CODE_INVALID_EMPTY_NAME)).
    """

    default_code: int = CODE_BAD_REQUEST

    def __init__(self, cause: str = "", code: int | None = None) -> None:
        self.error = ERROR_CODES[code if code is not None else self.default_code]
        self.cause = cause
        super().__init__(f"[{self.error.code}] {cause}" if cause else f"[{self.error.code}]")

    @property
    def code(self) -> int:
        return self.error.code

    @property
    def status_code(self) -> int:
        return self.error.status_code


class BadRequest(ServiceError):
    default_code = CODE_BAD_REQUEST


class NotAuthorized(ServiceError):
    default_code = CODE_NOT_AUTHORIZED


class Forbidden(ServiceError):
    default_code = CODE_FORBIDDEN


class NotFound(ServiceError):
    default_code = CODE_NOT_FOUND


class PasswordMismatch(ServiceError):
    default_code = CODE_INVALID_PASSWORD_NOT_MATCH


class StoreError(ServiceError):
    default_code = CODE_PSQL_GET


class CacheError(ServiceError):
    default_code = CODE_CACHE


class CacheRefreshError(CacheError):
    """Raised when a store read succeeded but the cache could not be warmed.

    The caller decides what to do with .value. The usual answer is to retry
    the read with Cache-Control: must-revalidate once the cache is healthy.
    """

    def __init__(self, cause: str, value: Any) -> None:
        super().__init__(cause)
        self.value = value
