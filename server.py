#!/usr/bin/env python3
"""
PingStream - Network diagnostics over HTTP
Flask routes for one-shot ping, port checks, and live ping/traceroute streams.
"""

from dataclasses import asdict
import platform

from flask import Flask, Response, jsonify, request
from flask_cors import CORS
from flask_socketio import SocketIO

import config
from services.ping_service import PingError, ping_once
from services.port_checker import check_port
from streaming.events import EventBus, SessionEvent
from streaming.registry import SessionRegistry
from streaming.sessions import MissingParameterError, PingStreamController, TracerouteStreamController


app = Flask(__name__)
CORS(app)
socketio = SocketIO(app, cors_allowed_origins="*", async_mode='threading')
API_KEY = config.API_KEY

SSE_HEADERS = {
    'Cache-Control': 'no-cache',
    'X-Accel-Buffering': 'no',
}

# Lifecycle events for every ping/traceroute session (bounded buffer + Socket.IO relay).
session_bus = EventBus(max_events=config.EVENT_BUFFER_SIZE)
ping_streams = PingStreamController(SessionRegistry(), session_bus)
traceroute_streams = TracerouteStreamController(session_bus)


def relay_session_event(event: SessionEvent) -> None:
    socketio.emit('probe_session', asdict(event))


session_bus.subscribe(relay_session_event)


@app.before_request
def enforce_optional_api_key():
    """Optional API key guard. Disabled when PINGSTREAM_API_KEY is unset."""
    if not API_KEY:
        return None
    if request.path == '/api/status':
        return None
    # EventSource cannot send custom headers, so streams may pass the key as a query arg.
    provided = request.headers.get('X-API-Key', '') or request.args.get('api_key', '')
    if provided != API_KEY:
        return jsonify({'error': 'Unauthorized'}), 401
    return None


def sse_response(stream, on_close) -> Response:
    response = Response(stream, mimetype='text/event-stream', headers=SSE_HEADERS)
    # Covers a client that drops before the generator ever ran.
    response.call_on_close(on_close)
    return response


# ============== PING ==============

@app.route('/ping-once', methods=['POST'])
def ping_once_route():
    """Ping a host once and return the raw output"""
    data = request.get_json(silent=True) or {}
    ip = str(data.get('ip') or '').strip()
    if not ip:
        return jsonify({'error': 'IP address is required'}), 400
    try:
        output = ping_once(ip)
    except PingError as e:
        return jsonify({'error': str(e)}), 500
    return Response(output, mimetype='text/plain')


@app.route('/ping-stream', methods=['GET'])
def ping_stream():
    """Continuous ping streamed as server-sent events"""
    try:
        session = ping_streams.start(request.args.get('ip'), request.args.get('id'))
    except MissingParameterError as e:
        return Response(str(e), status=400, mimetype='text/plain')
    return sse_response(ping_streams.stream(session), lambda: ping_streams.disconnect(session))


@app.route('/ping-stop', methods=['POST'])
def ping_stop():
    """Stop a streaming ping and return its statistics"""
    data = request.get_json(silent=True) or {}
    session_id = str(data.get('id') or '').strip()
    if not session_id:
        return jsonify({'error': 'ID is required'}), 400
    summary = ping_streams.stop(session_id)
    if summary is None:
        return Response('No running ping for this ID', status=404, mimetype='text/plain')
    return Response(summary.render(), mimetype='text/plain')


# ============== PORT CHECKER ==============

@app.route('/check-port', methods=['GET'])
def check_port_route():
    """Probe a single TCP/UDP port"""
    ip = str(request.args.get('ip') or '').strip()
    port = request.args.get('port')
    protocol = request.args.get('protocol')
    if not ip or not port or not protocol:
        return jsonify({'error': 'IP, port, and protocol are required'}), 400
    try:
        result = check_port(ip, port, protocol)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    return jsonify(result.to_dict())


# ============== TRACEROUTE ==============

@app.route('/traceroute-stream', methods=['GET'])
def traceroute_stream():
    """Traceroute streamed as server-sent events"""
    try:
        session = traceroute_streams.start(request.args.get('ip'))
    except MissingParameterError as e:
        return Response(str(e), status=400, mimetype='text/plain')
    return sse_response(traceroute_streams.stream(session), lambda: traceroute_streams.disconnect(session))


@app.route('/stop-traceroute', methods=['GET'])
def stop_traceroute():
    """Stop every running traceroute"""
    stopped = traceroute_streams.stop_all()
    if not stopped:
        return jsonify({'status': 'no process running'})
    return jsonify({'status': 'stopped', 'count': stopped})


# ============== STATUS ==============

@app.route('/api/status', methods=['GET'])
def get_status():
    """Get service status"""
    return jsonify({
        'platform': platform.system(),
        'ping_available': config.PING_AVAILABLE,
        'traceroute_available': config.TRACEROUTE_AVAILABLE,
        'probe_timeout': config.PROBE_TIMEOUT,
        'active_pings': len(ping_streams.registry),
        'active_traceroutes': traceroute_streams.active_count(),
        'api_key_enabled': bool(API_KEY),
    })


@app.route('/api/sessions', methods=['GET'])
def list_sessions():
    """List running ping sessions with live statistics"""
    return jsonify({'sessions': ping_streams.active_sessions()})


@app.route('/api/events', methods=['GET'])
def list_events():
    """List recent session lifecycle events (bounded buffer)"""
    try:
        limit = int(request.args.get('limit', 200))
    except Exception:
        limit = 200
    limit = max(1, min(config.EVENT_BUFFER_SIZE, limit))
    return jsonify({'events': session_bus.list_events(limit=limit)})
