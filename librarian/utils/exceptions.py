"""Custom exceptions for Librarian application."""


class LibrarianError(Exception):
    """Base exception for all Librarian errors."""

    pass


class BookValidationError(LibrarianError):
    """Exception raised when a book submission is missing or has invalid fields."""

    pass


class DuplicateIsbnError(LibrarianError):
    """Exception raised when a book's ISBN already exists in the catalog."""

    def __init__(self, isbn: str | None = None):
        self.isbn = isbn
        super().__init__(
            f"Book with ISBN {isbn} already exists"
            if isbn
            else "Book with this ISBN already exists"
        )


class StoreUnavailableError(LibrarianError):
    """Exception raised when the key-value store cannot be reached."""

    pass


class RecipientNotFoundError(LibrarianError):
    """Exception raised when no email address can be resolved for a report."""

    pass


class ReportRenderError(LibrarianError):
    """Exception raised when PDF report generation fails."""

    pass


class MailDeliveryError(LibrarianError):
    """Exception raised when the SMTP transport rejects or fails a message."""

    pass
