"""
Gotify MQTT Forwarder Main Application Entry Point

Hosts the MQTT forwarder plugin outside the hub: loads configuration,
installs the plugin, mounts its webhook on a FastAPI application and
serves it with uvicorn.
"""

import sys
import traceback
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

# Add src and the project root to the Python path
sys.path.insert(0, str(Path(__file__).parent))
sys.path.insert(0, str(Path(__file__).parent.parent))

import uvicorn
from fastapi import APIRouter, FastAPI
from starlette.concurrency import run_in_threadpool

from core.config import ConfigurationManager
from core.hub_client import GotifyMessageHandler
from core.logging import initialize_logging, get_logger, get_structured_logger
from plugins.mqtt_forwarder.config import ConfigValidationError
from plugins.mqtt_forwarder.mqtt_client import ConnectError
from plugins.mqtt_forwarder.plugin import MQTTForwarderPlugin, create_plugin
from plugins.mqtt_forwarder.webhook import add_status_routes


class GatewayApplication:
    """Wires configuration, logging, the hub client and the plugin together"""

    def __init__(self, config_manager: Optional[ConfigurationManager] = None,
                 plugin: Optional[MQTTForwarderPlugin] = None):
        self.config_manager = config_manager
        self.plugin = plugin
        self.hub_client: Optional[GotifyMessageHandler] = None
        self.app: Optional[FastAPI] = None
        self.logger = None
        self.events = None

    def initialize(self) -> FastAPI:
        """Initialize all application components and build the web app"""
        if self.config_manager is None:
            self.config_manager = ConfigurationManager()
            self.config_manager.load_config()

        initialize_logging(self.config_manager.config)
        self.logger = get_logger('main')
        self.events = get_structured_logger('main')

        self.logger.info("Gotify MQTT forwarder starting up...")
        self.logger.info(f"Version: {self.config_manager.get('app.version', '1.0.0')}")

        if self.plugin is None:
            self.plugin = create_plugin()

        if self.plugin.message_handler is None:
            self.hub_client = GotifyMessageHandler(
                url=self.config_manager.get('hub.url'),
                app_token=self.config_manager.get('hub.app_token', ''),
                timeout=self.config_manager.get('hub.timeout', 10)
            )
            self.plugin.set_message_handler(self.hub_client)

        self._install_plugin_config()

        self.app = self._create_app()
        self.logger.info("Core systems initialized successfully")
        return self.app

    def _install_plugin_config(self):
        """Install the user's plugin config, falling back to the defaults"""
        user_config = self.config_manager.get_plugin_config()
        try:
            if user_config:
                self.plugin.validate_and_set_config(user_config)
            else:
                self.logger.info("No plugin configuration provided, using defaults")
                self.plugin.validate_and_set_config(self.plugin.default_config())
        except ConfigValidationError as e:
            self.logger.error(f"Invalid plugin configuration, using defaults: {e}")
            self.plugin.validate_and_set_config(self.plugin.default_config())

    def _create_app(self) -> FastAPI:
        base_path = self.config_manager.get('plugin.base_path', '/plugin/mqtt/')
        if not base_path.endswith('/'):
            base_path += '/'

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            await run_in_threadpool(self.start)
            try:
                yield
            finally:
                await run_in_threadpool(self.stop)

        app = FastAPI(
            title="Gotify MQTT Forwarder",
            version=self.config_manager.get('app.version', '1.0.0'),
            lifespan=lifespan
        )

        router = APIRouter(prefix=base_path.rstrip('/'))
        self.plugin.register_webhook(base_path, router)
        add_status_routes(router, self.plugin, self.config_manager.get('plugin.location', ''))
        app.include_router(router)
        return app

    def start(self) -> None:
        """Enable the plugin; a broker that is down does not stop the app"""
        try:
            self.plugin.enable()
            self.events.info("plugin_enabled", connected=True)
        except ConnectError as e:
            self.events.warning("plugin_enabled", connected=False, error=str(e))

    def stop(self) -> None:
        """Disable the plugin and release the hub client"""
        self.plugin.disable()
        if self.hub_client is not None:
            self.hub_client.close()
        self.events.info("plugin_disabled", queued=self.plugin.message_queue.size())

    def run(self) -> None:
        """Serve the application until interrupted"""
        app = self.app or self.initialize()
        uvicorn.run(
            app,
            host=self.config_manager.get('server.host', '0.0.0.0'),
            port=self.config_manager.get('server.port', 8080),
            log_config=None
        )


def main():
    """Main entry point"""
    application = GatewayApplication()

    try:
        application.initialize()
        application.run()
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
    except Exception as e:
        print(f"Application failed to start: {e}")
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
