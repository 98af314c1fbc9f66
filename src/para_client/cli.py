#!/usr/bin/env python3
"""Para CLI interface using the para-client library."""

import asyncio
import json
import logging
import os
import sys

import click

from .auth import SignableRequest
from .client import ParaClient
from .exceptions import ParaError
from .urlparsing import get_host


@click.group()
@click.option("--config-file", help="Path to Para config file")
@click.option("--profile", default="default", help="Profile in the config file")
@click.option("--verbose", is_flag=True, help="Log requests and auth decisions")
@click.pass_context
def cli(ctx, config_file, profile, verbose):
    """Para CLI - sign requests and manage JWT sessions."""
    ctx.ensure_object(dict)

    if verbose:
        logging.basicConfig(level=logging.DEBUG)

    if config_file:
        try:
            client = ParaClient.from_config(
                profile_name=profile, config_path=config_file
            )
        except (FileNotFoundError, ValueError) as e:
            click.echo(f"Error loading config file: {e}", err=True)
            sys.exit(1)
    else:
        access_key = os.getenv("PARA_ACCESS_KEY")
        if not access_key:
            click.echo("Error: PARA_ACCESS_KEY must be set", err=True)
            sys.exit(1)

        client = ParaClient(
            access_key=access_key,
            secret_key=os.getenv("PARA_SECRET_KEY"),
            endpoint=os.getenv("PARA_ENDPOINT") or "https://paraio.com",
            api_path=os.getenv("PARA_API_PATH") or "/v1/",
        )

    ctx.obj["client"] = client


@cli.command()
@click.argument("method")
@click.argument("path")
@click.option("--host", help="Host to sign for (defaults to the endpoint host)")
@click.option("--service", default="para", help="Service name in the scope")
@click.option("--region", help="Region in the scope")
@click.option("--body", help="Request body")
@click.option("--date", help="Fixed X-Amz-Date timestamp (YYYYMMDDTHHMMSSZ)")
@click.option("--query", is_flag=True, help="Put the signature in the query string")
@click.pass_context
def sign(ctx, method, path, host, service, region, body, date, query):
    """Sign a request offline and print the result."""
    client = ctx.obj["client"]

    headers = {}
    if date and query:
        path += ("&" if "?" in path else "?") + f"X-Amz-Date={date}"
    elif date:
        headers["X-Amz-Date"] = date

    request = SignableRequest(
        method=method.upper(),
        host=host or get_host(client.endpoint_url),
        path=path,
        headers=headers,
        body=body,
        service=service,
        region=region,
        sign_query=query,
    )
    try:
        client.signer.sign(request, client.credentials)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(
        json.dumps({"path": request.path, "headers": request.headers}, indent=2)
    )


@cli.command()
@click.pass_context
def version(ctx):
    """Print the Para server version."""

    async def _version():
        client = ctx.obj["client"]

        async with client:
            return await client.get_server_version()

    try:
        click.echo(asyncio.run(_version()))
    except ParaError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option("--token", help="JWT access token to authenticate with")
@click.pass_context
def me(ctx, token):
    """Print the authenticated user or app."""

    async def _me():
        client = ctx.obj["client"]

        async with client:
            return await client.me(token)

    try:
        result = asyncio.run(_me())
    except ParaError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(json.dumps(result, indent=2))


@cli.command()
@click.argument("provider")
@click.argument("provider_token")
@click.pass_context
def signin(ctx, provider, provider_token):
    """Sign in with an identity provider token and print the JWT."""

    async def _signin():
        client = ctx.obj["client"]

        async with client:
            user = await client.sign_in(provider, provider_token)
            return user, client.get_access_token()

    user, token = asyncio.run(_signin())
    if user is None:
        click.echo(f"Sign in with '{provider}' failed", err=True)
        sys.exit(1)

    click.echo(json.dumps({"user": user, "access_token": token}, indent=2))


if __name__ == "__main__":
    cli()
