import argparse
import logging
import sys

import requests

from zkpauth.auth.errors import ZKPAuthError
from zkpauth.client.zkp_client import ZKPClient
from zkpauth.config import get_settings
from zkpauth.crypto.zkp import secret_from_password


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Authenticate to a ZKP auth server")
    parser.add_argument("--username", required=True)
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--password", help="derive the secret from a password")
    group.add_argument("--secret", type=int, help="secret exponent in [1, q)")
    parser.add_argument("--api-url", default=None)
    parser.add_argument("--skip-register", action="store_true", help="prove against an existing registration")
    return parser


def run(argv=None, session=None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    api_url = settings.api_url if args.api_url is None else args.api_url

    client = ZKPClient(args.username, args.secret or 0, api_url=api_url, session=session)
    try:
        params = client.fetch_parameters()
        if args.password is not None:
            client.secret = secret_from_password(args.password, params.q)
        if not args.skip_register:
            client.register()
        session_token = client.prove()
    except ZKPAuthError as e:
        print(f"Error during proof: {e}")
        return 2
    except requests.RequestException as e:
        print(f"Could not reach server: {e}")
        return 2

    if session_token:
        print(f"Authentication successful! Session: {session_token}")
        return 0
    print("Authentication failed!")
    return 1


def main():
    logging.basicConfig(level=get_settings().log_level)
    sys.exit(run())


if __name__ == "__main__":
    main()
