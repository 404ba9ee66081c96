#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Endpoint for browsing configurations and deploying them onto hosts.

A deployment answers 200 as long as the configuration exists, failures of
single hosts are reported in the body.
"""
import typing as t

from flask import request
from flask_restx import Namespace, Resource

from pxepilot.catalog import Configuration
from pxepilot.deploy import DeploymentResult, HostRequest, Outcome
from pxepilot.errors import ConfigurationNotFound
from pxepilot.logging import get as get_logger
from pxepilot.model import PilotModel
from pxepilot.serve.context import get_context
from pxepilot.serve.util import (
    empty_response,
    error_response,
    json_response,
    parse_body,
    repr_request,
)

ns: Namespace = Namespace(
    "configurations",
    description="Browse boot configurations and deploy them onto hosts.",
)
_logger = get_logger("configurations")


class DeployBody(PilotModel):
    """Hosts to deploy a configuration onto."""

    hosts: t.List[HostRequest]


def _summary(configuration: Configuration) -> t.Dict[str, str]:
    return {
        "name": configuration.name,
        "bootloader": configuration.bootloader.name,
    }


def deployment_body(result: DeploymentResult) -> t.Dict[str, t.Any]:
    """
    Describe each host of a deployment.

    ``rebooted`` is the outcome as a single string, failures carry their
    reason, i.e. ``Failed(HostUnknown)``.
    """

    hosts = []
    for entry in result.hosts:
        rebooted = entry.outcome.value
        if entry.outcome == Outcome.failed and entry.reason is not None:
            rebooted = f"{rebooted}({entry.reason.value})"
        hosts.append(
            {
                "name": entry.name,
                "configuration": result.configuration,
                "outcome": entry.outcome.value,
                "reason": entry.reason.value if entry.reason else None,
                "detail": entry.detail,
                "rebooted": rebooted,
            }
        )
    return {"hosts": hosts}


@ns.route("", endpoint="configurations")
class Configurations(Resource):
    """Resource representing every configuration."""

    @staticmethod
    def get():
        """List configurations, sorted by name, without their content."""

        catalog = get_context().catalog.get()
        return json_response(
            [_summary(cfg) for cfg in catalog.configurations()]
        )


@ns.route("/reload", endpoint="configurations_reload")
class ReloadConfigurations(Resource):
    """Reload the catalog from the configuration directory."""

    @staticmethod
    def patch():
        """
        Swap in a freshly loaded catalog.

        Hosts whose configuration no longer exists are unassigned.
        Returns 500 and keeps the current catalog if loading fails.
        """

        try:
            catalog = get_context().reload_catalog()
        except (OSError, ValueError) as err:
            _logger.error("Unable to reload configurations: %s", err)
            return error_response(f"Unable to reload: {err}", 500)
        _logger.info(
            "Reloaded catalog with %d configuration(s)", len(catalog)
        )
        return empty_response()


@ns.route("/<string:name>", endpoint="configuration")
@ns.param("name", "Name of the configuration")
class ConfigurationByName(Resource):
    """Resource representing one configuration."""

    @staticmethod
    def get(name: str):
        """Get the configuration, with its bootloader and content."""

        configuration = get_context().catalog.get().resolve(name)
        if configuration is None:
            return error_response(f"Configuration not found: {name}", 404)
        return json_response(configuration)


@ns.route("/<string:name>/deploy", endpoint="configuration_deploy")
@ns.param("name", "Name of the configuration")
class DeployConfiguration(Resource):
    """Deploy a configuration onto hosts."""

    @staticmethod
    def put(name: str):
        """
        Deploy the configuration onto the given hosts.

        Expects a body like ``{"hosts": [{"name": ..., "reboot": ...}]}``.
        Returns 404 if the configuration is unknown, nothing is changed in
        that case.
        """

        body, bad_resp = parse_body(request, DeployBody, _logger)
        if body is None:
            return bad_resp

        _logger.info(
            "Received request to deploy %s: %s", name, repr_request(request)
        )
        try:
            result = get_context().orchestrator.deploy(name, body.hosts)
        except ConfigurationNotFound as err:
            return error_response(str(err), 404)
        return json_response(deployment_body(result))
