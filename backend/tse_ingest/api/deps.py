from fastapi import Request
from tse_ingest.services.importer.queue import ImportQueue


def get_queue(request: Request) -> ImportQueue:
    return request.app.state.import_queue
