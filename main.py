"""
Meteocache - location-keyed weather client with TOML configuration.
Fetches current conditions, forecast and alerts for one location and prints them as JSON.
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import List, Optional

from internal.config.manager import ConfigManager
from lib import utils
from lib.logging_utils import initLogging
from lib.openweathermap import OpenWeatherMapClient
from lib.weather import (
    Location,
    ResourceKind,
    WeatherResourceCache,
    WeatherService,
    WeatherTelemetry,
    buildLocationKey,
    createTelemetrySink,
)

# Configure basic logging first
logging.basicConfig(format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", level=logging.INFO)
# set higher logging level for httpx to avoid all GET and POST requests being logged
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


class WeatherApplication:
    """Wires configuration, provider client, telemetry and the resource cache together."""

    def __init__(self, configPath: str = "config.toml", config_dirs: Optional[List[str]] = None):
        self.configManager = ConfigManager(configPath, config_dirs)

        initLogging(self.configManager.getLoggingConfig())

        owmConfig = self.configManager.getOpenWeatherMapConfig()
        self.client = OpenWeatherMapClient(
            apiKey=self.configManager.getOpenWeatherMapApiKey(),
            units=owmConfig.get("units", "metric"),
            language=owmConfig.get("language"),
            requestTimeout=owmConfig.get("request-timeout", 10),
            baseUrl=owmConfig.get("base-url"),
        )

        telemetryConfig = self.configManager.getTelemetryConfig()
        self.telemetry = WeatherTelemetry(createTelemetrySink(telemetryConfig.get("sink", "logging")))
        self.service = WeatherService(self.client, telemetry=self.telemetry)

        cacheConfig = self.configManager.getWeatherCacheConfig()
        self.cache = WeatherResourceCache(
            self.service,
            ttl=cacheConfig.get("ttl", 300),
            maxLocations=cacheConfig.get("max-locations", 256),
        )

    async def fetch(self, location: Location) -> dict:
        """Ensure all resource kinds for a location and return their state."""
        await asyncio.gather(*(self.cache.ensure(kind, location) for kind in ResourceKind))

        key = buildLocationKey(location)
        resources = self.cache.getResources(key)
        return {
            "key": key,
            "current": resources.current,
            "forecast": resources.forecast,
            "alerts": resources.alerts,
        }

    def run(self, location: Location) -> int:
        """Fetch and print resources, returns process exit code."""
        result = asyncio.run(self.fetch(location))
        print(utils.jsonDumps(result, indent=2))

        failed = [kind for kind in ResourceKind if result[kind.value] is None or result[kind.value].error is not None]
        if failed:
            logger.warning(f"Failed to fetch: {', '.join(failed)}")
            return 1
        return 0


def parse_arguments():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Meteocache - fetch weather for a location and print it as JSON")
    parser.add_argument(
        "-c",
        "--config",
        default="config.toml",
        help="Path to configuration file (default: config.toml)",
    )
    parser.add_argument(
        "--config-dir",
        action="append",
        help="Directory to search for .toml config files recursively (can be specified multiple times)",
    )
    parser.add_argument(
        "--print-config",
        action="store_true",
        help="Pretty-print loaded configuration and exit",
    )
    parser.add_argument("--lat", type=float, help="Latitude (-90..90)")
    parser.add_argument("--lon", type=float, help="Longitude (-180..180)")
    parser.add_argument("--name", help="Optional location name, echoed in results")
    parser.add_argument("--id", dest="location_id", help="Optional caller-side location identifier")
    args = parser.parse_args()
    args.config = os.path.abspath(args.config)

    if args.config_dir:
        args.config_dir = [os.path.abspath(dir_path) for dir_path in args.config_dir]

    if not args.print_config:
        if args.lat is None or args.lon is None:
            parser.error("--lat and --lon are required")
        if not -90 <= args.lat <= 90 or not -180 <= args.lon <= 180:
            parser.error("coordinates out of range")

    return args


def prettyPrintConfig(config_manager: ConfigManager):
    """Pretty-print the loaded configuration."""
    print("=== Meteocache Configuration ===")
    print()
    print(utils.jsonDumps(config_manager.config, indent=2))
    print()
    print("=== Configuration loaded successfully ===")


def main():
    """Main entry point."""
    args = parse_arguments()

    try:
        if args.print_config:
            prettyPrintConfig(ConfigManager(args.config, args.config_dir))
            sys.exit(0)

        app = WeatherApplication(configPath=args.config, config_dirs=args.config_dir)
        location = Location(lat=args.lat, lon=args.lon, name=args.name, id=args.location_id)
        sys.exit(app.run(location))
    except KeyboardInterrupt:
        logger.info("Stopped by user")
    except Exception as e:
        logger.error(f"Weather client crashed: {e}")
        logger.exception(e)
        sys.exit(1)


if __name__ == "__main__":
    main()
