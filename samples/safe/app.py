"""Module demonstrating the safe counterparts of the vulnerable sample."""

import hashlib
import json
import logging
import os
import secrets

import requests

logger = logging.getLogger(__name__)

password = os.environ.get("APP_PASSWORD", "")


def fetch(url):
    return requests.get(url, timeout=10)


def fingerprint(data):
    return hashlib.sha256(data).hexdigest()


def session_id():
    return secrets.token_hex(16)


def load(blob):
    try:
        return json.loads(blob)
    except ValueError:
        logger.warning("Discarding malformed payload")
        return None
