import logging
import os

from azure.monitor.opentelemetry import configure_azure_monitor


def configure_logging(log_level: str):
    logging.basicConfig(level=log_level.upper())
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def configure_telemetry(logger: logging.Logger):
    application_insights_connection_string = os.getenv("APPLICATIONINSIGHTS_CONNECTION_STRING")
    if application_insights_connection_string:
        logger.info("🚀 Configuring Azure Monitor telemetry")

        # Options: https://github.com/Azure/azure-sdk-for-python/tree/main/sdk/monitor/azure-monitor-opentelemetry#usage
        configure_azure_monitor(connection_string=application_insights_connection_string)
    else:
        logger.info("🚀 Azure Monitor telemetry not configured (set APPLICATIONINSIGHTS_CONNECTION_STRING)")
