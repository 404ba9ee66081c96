#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Module containing flask routes to load on start."""
import typing as t

from flask_restx import Api, Namespace

from pxepilot.serve.routes import bootloaders, configurations, hosts, refresh

namespaces: t.Tuple[Namespace, ...] = (
    bootloaders.ns,
    configurations.ns,
    hosts.ns,
    refresh.ns,
)


def register_routes(api: Api):
    """Register all of the routes within the routes module."""

    for namespace in namespaces:
        api.add_namespace(namespace)
