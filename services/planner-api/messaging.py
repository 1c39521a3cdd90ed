"""
Eventos de planes sobre RabbitMQ.

Los servicios publican eventos (task_created, task_deleted,
milestone_status_changed) con publish_plan_event y un worker en background
los consume y los despacha al handler registrado para cada evento.
Con RABBITMQ_URL vacío no se publica ni se consume nada.
"""

import json
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Optional
import pika
from pybreaker import CircuitBreaker, CircuitBreakerError
from config import RABBITMQ_URL

logger = logging.getLogger(__name__)

QUEUE_NAME = "planner_events"
QUEUE_ARGUMENTS = {"x-max-length": 10000, "x-message-ttl": 3600000}

# Si el broker no responde, dejar de intentar publicar por 30 segundos
publish_breaker = CircuitBreaker(fail_max=5, reset_timeout=30, name="rabbitmq_publish")


class EventQueue:
    """Cola durable de eventos. La conexión se abre en el primer uso."""

    def __init__(self, queue_name: str = QUEUE_NAME, url: Optional[str] = None):
        self.queue_name = queue_name
        self.url = RABBITMQ_URL if url is None else url
        self.connection = None
        self.channel = None
        # BlockingConnection no es thread-safe y los endpoints corren en un threadpool
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    def _open_channel(self):
        if self.channel is None or self.channel.is_closed or self.connection.is_closed:
            self.connection = pika.BlockingConnection(pika.URLParameters(self.url))
            self.channel = self.connection.channel()
            self.channel.queue_declare(queue=self.queue_name, durable=True, arguments=QUEUE_ARGUMENTS)
            logger.info(f"Conectado a cola RabbitMQ: {self.queue_name}")
        return self.channel

    @publish_breaker
    def _send(self, body: str):
        with self._lock:
            self._open_channel().basic_publish(
                exchange="",
                routing_key=self.queue_name,
                body=body,
                properties=pika.BasicProperties(delivery_mode=2, content_type="application/json"),
            )

    def publish(self, message: dict) -> bool:
        if not self.enabled:
            return False
        event = message.get("event", "unknown")
        try:
            self._send(json.dumps(message, default=str))
        except CircuitBreakerError:
            logger.warning(f"Circuit breaker abierto, evento descartado: {event}")
            return False
        except Exception as e:
            logger.error(f"Falló al publicar evento {event}: {e}")
            return False
        logger.info(f"Evento publicado en {self.queue_name}: {event}")
        return True

    def consume(self, on_message: Callable[[dict], None]):
        """
        Consumir hasta que se llame a stop_consuming(). Un mensaje que hace
        fallar al handler se descarta para no reencolarlo indefinidamente.
        """
        def deliver(ch, method, properties, body):
            try:
                on_message(json.loads(body))
            except Exception as e:
                logger.error(f"Error procesando evento, se descarta: {e}")
                ch.basic_nack(delivery_tag=method.delivery_tag, requeue=False)
            else:
                ch.basic_ack(delivery_tag=method.delivery_tag)

        channel = self._open_channel()
        channel.basic_qos(prefetch_count=1)
        channel.basic_consume(queue=self.queue_name, on_message_callback=deliver)
        logger.info(f"Consumiendo eventos de {self.queue_name}")
        channel.start_consuming()

    def stop_consuming(self):
        """Pedir al hilo consumidor que salga de start_consuming()"""
        if self.connection is not None and self.connection.is_open:
            self.connection.add_callback_threadsafe(self.channel.stop_consuming)

    def pending(self) -> int:
        """Mensajes en la cola, -1 si no se pudo consultar"""
        if not self.enabled:
            return 0
        try:
            with self._lock:
                declared = self._open_channel().queue_declare(queue=self.queue_name, durable=True, passive=True)
            return declared.method.message_count
        except Exception as e:
            logger.error(f"Error consultando la cola {self.queue_name}: {e}")
            return -1

    def close(self):
        if self.connection is None or self.connection.is_closed:
            return
        try:
            self.connection.close()
            logger.info(f"Conexión cerrada a {self.queue_name}")
        except Exception as e:
            logger.error(f"Error cerrando conexión a {self.queue_name}: {e}")


class PlanEventWorker:
    """
    Publica eventos de planes y los procesa en un hilo en background.
    El consumidor usa su propia conexión, separada de la de publicación.
    """

    def __init__(self, queue_name: str = QUEUE_NAME, url: Optional[str] = None):
        self.publisher = EventQueue(queue_name, url)
        self.consumer = EventQueue(queue_name, url)
        self.handlers: dict[str, Callable[[dict], None]] = {}
        self.thread: Optional[threading.Thread] = None

    @property
    def enabled(self) -> bool:
        return self.publisher.enabled

    @property
    def running(self) -> bool:
        return self.thread is not None and self.thread.is_alive()

    def on(self, event: str, handler: Callable[[dict], None]):
        self.handlers[event] = handler

    def emit(self, event: str, **data) -> bool:
        return self.publisher.publish({
            "event": event,
            "data": data,
            "published_at": datetime.now(timezone.utc).isoformat(),
        })

    def dispatch(self, message: dict):
        event = message.get("event")
        handler = self.handlers.get(event)
        if handler is None:
            logger.warning(f"Evento sin handler registrado: {event}")
            return
        handler(message.get("data", {}))

    def start(self):
        if self.running:
            logger.warning("Worker de eventos ya está corriendo")
            return
        if not self.enabled:
            logger.info("RabbitMQ deshabilitado, no se inicia el worker de eventos")
            return

        def run():
            try:
                self.consumer.consume(self.dispatch)
            except Exception as e:
                logger.error(f"Worker de eventos detenido por error: {e}")

        self.thread = threading.Thread(target=run, name="plan-events", daemon=True)
        self.thread.start()
        logger.info("Worker de eventos iniciado en background")

    def stop(self, timeout: float = 5.0):
        if self.running:
            self.consumer.stop_consuming()
            self.thread.join(timeout)
        self.consumer.close()
        self.publisher.close()
        logger.info("Worker de eventos detenido")


def check_rabbitmq_health() -> dict:
    if not RABBITMQ_URL:
        return {"status": "disabled", "service": "rabbitmq"}
    try:
        connection = pika.BlockingConnection(pika.URLParameters(RABBITMQ_URL))
        connection.close()
        return {"status": "healthy", "service": "rabbitmq"}
    except Exception as e:
        return {"status": "unhealthy", "service": "rabbitmq", "error": str(e)}


def log_plan_event(event: str) -> Callable[[dict], None]:
    def handle(data: dict):
        logger.info(f"Evento {event}: {data}")
    return handle


plan_events = PlanEventWorker()
for _event in ("task_created", "task_deleted", "milestone_status_changed"):
    plan_events.on(_event, log_plan_event(_event))


def publish_plan_event(event: str, **data) -> bool:
    """Encolar un evento de plan. Nunca hace fallar el request."""
    return plan_events.emit(event, **data)
