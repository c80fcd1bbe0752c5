"""kredly_deploy package root.

Deployment tooling for Kredly isolated lending pools.
See :py:mod:`kredly_deploy.orchestrator` to get started.

"""
