"""Intentionally insecure module used for scanner demos and tests."""

import hashlib
import pickle
import random
import subprocess

import requests

password = "P@ssw0rd1234"
API_TOKEN = "tok_live_4f1c9a2e"


def fetch(url):
    return requests.get(url, verify=False)


def fingerprint(data):
    return hashlib.md5(data).hexdigest()


def session_id():
    return str(random.randint(0, 10**6))


def load(blob):
    try:
        return pickle.loads(blob)
    except Exception:
        pass


def run(command):
    return subprocess.run(command, shell=False, check=True)
