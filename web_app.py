#!/usr/bin/env python3
"""
TalkItOut - practice a difficult workplace conversation in the browser.

Features:
- Speak to an AI coworker who keeps missing deadlines (browser speech recognition)
- Hear the coworker's replies (ElevenLabs, with a bundled sample clip fallback)
- Structured feedback (Nonviolent Communication, Thomas-Kilmann) after the
  final turn or when you end the session early
- Optional camera mode adds body-language notes to the results

Run:
    python3 web_app.py

Then open: http://localhost:5001
"""

import logging
import secrets

from flask import Flask, jsonify, render_template_string, request, send_from_directory, session

from talkitout.agents.dialogue_gateway import DialogueGateway, parse_history
from talkitout.config import PROJECT_ROOT, Settings, setup_logging
from talkitout.feedback import ALL_HEADERS
from talkitout.llm.manager import LLMManager
from talkitout.prompts.persona import WELCOME_MESSAGE
from talkitout.results import REDIRECT_DELAY_MS, load_results
from talkitout.schemas.feedback import (
    ConfidenceRecord,
    FeedbackRecord,
    default_camera_feedback,
    default_feedback,
)
from talkitout.session import (
    PLACEHOLDER_TRANSCRIPT,
    RESULTS_LOCATION,
    SAVE_FAILED_MESSAGE,
    clear_results,
    write_results,
)
from talkitout.voice.speech_to_text import TranscriptionGateway
from talkitout.voice.text_to_speech import FALLBACK_AUDIO_URL, TextToSpeech

settings = Settings.from_env()
setup_logging(settings.log_level)
logger = logging.getLogger("talkitout.web")

STATIC_DIR = PROJECT_ROOT / "static"

app = Flask(__name__, static_folder=str(STATIC_DIR), static_url_path="/static")
app.secret_key = settings.secret_key or secrets.token_hex(16)

dialogue_gateway = DialogueGateway(
    LLMManager(openai_api_key=settings.openai_api_key, groq_api_key=settings.groq_api_key),
    threshold=settings.feedback_threshold,
)
speech_gateway = TextToSpeech(elevenlabs_api_key=settings.elevenlabs_api_key)
transcription_gateway = TranscriptionGateway(settings.openai_api_key, settings.google_ai_api_key)

BASE_STYLE = """
    <style>
        :root {
            --bg: #f5f5f7; --surface: #ffffff; --text-1: #1d1d1f; --text-2: #6e6e73;
            --accent: #0071e3; --green: #1a7f37; --red: #c62828; --purple: #6e3bc9;
            --font: -apple-system, BlinkMacSystemFont, system-ui, sans-serif;
        }
        *, *::before, *::after { box-sizing: border-box; margin: 0; padding: 0; }
        body { font-family: var(--font); background: var(--bg); color: var(--text-1); line-height: 1.5; }
        main { max-width: 820px; margin: 0 auto; padding: 32px 20px; }
        h1 { font-size: 32px; letter-spacing: -0.8px; margin-bottom: 12px; }
        h2 { font-size: 20px; margin-bottom: 12px; }
        h3 { font-size: 16px; margin: 16px 0 6px; }
        .card { background: var(--surface); border-radius: 16px; padding: 24px; margin-bottom: 20px;
                box-shadow: 0 4px 24px rgba(0,0,0,0.06); }
        .btn { display: inline-block; border: none; border-radius: 999px; padding: 10px 22px; font-size: 15px;
               background: var(--accent); color: #fff; text-decoration: none; cursor: pointer; }
        .btn.secondary { background: rgba(0,0,0,0.06); color: var(--text-1); }
        .btn:disabled { opacity: 0.45; cursor: default; }
        .muted { color: var(--text-2); }
        .tag { display: inline-block; font-size: 12px; border-radius: 999px; padding: 2px 10px;
               background: rgba(110,59,201,0.1); color: var(--purple); margin-left: 8px; vertical-align: middle; }
        ul { padding-left: 20px; }
        li { margin-bottom: 6px; }
    </style>
"""

INDEX_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>TalkItOut</title>
    {{ style|safe }}
</head>
<body>
<main>
    <h1>TalkItOut</h1>
    <p class="muted" style="margin-bottom: 24px;">
        Practice a difficult workplace conversation. Your coworker has been missing project
        deadlines, and it's time to talk about it. After {{ threshold }} exchanges you'll get
        feedback on how you handled it.
    </p>
    <div class="card">
        <h2>How it works</h2>
        <ul>
            <li>Press the microphone and speak; press again when you're done.</li>
            <li>Your coworker answers out loud. Be careful: they react to your tone.</li>
            <li>End early any time to get feedback on the conversation so far.</li>
            <li>Turn on the camera to add body-language notes to your results.</li>
        </ul>
    </div>
    <a class="btn" href="/chat">Start practicing</a>
</main>
</body>
</html>
"""

CHAT_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>TalkItOut - Conversation</title>
    {{ style|safe }}
    <style>
        #messages { display: flex; flex-direction: column; gap: 10px; min-height: 280px; }
        .msg { padding: 10px 14px; border-radius: 14px; max-width: 80%; white-space: pre-wrap; }
        .msg.user { align-self: flex-end; background: var(--accent); color: #fff; }
        .msg.assistant { align-self: flex-start; background: rgba(0,0,0,0.05); cursor: pointer; }
        .msg.system { align-self: center; background: #fff7e6; color: #9a4e00; font-size: 14px; }
        .controls { display: flex; gap: 10px; align-items: center; flex-wrap: wrap; }
        #status { min-height: 24px; margin: 12px 0; }
    </style>
</head>
<body>
<main>
    <h1>Conversation</h1>
    <p class="muted">Exchange <span id="turn">0</span> of {{ threshold }}</p>

    <div class="card"><div id="messages"></div></div>
    <div id="status" class="muted"></div>

    <div class="controls">
        <button id="mic" class="btn">🎤 Start speaking</button>
        <button id="end" class="btn secondary" disabled>End session</button>
        <button id="reset" class="btn secondary">Start over</button>
        <label class="muted"><input type="checkbox" id="autoplay" checked> Auto-play</label>
        <label class="muted"><input type="checkbox" id="camera"> Camera</label>
    </div>
    <video id="preview" autoplay muted playsinline style="display:none"></video>
    <audio id="player"></audio>
</main>

<script>
    const THRESHOLD = {{ threshold }};
    const WELCOME = {{ welcome|tojson }};
    const PLACEHOLDER = {{ placeholder|tojson }};
    const HEADERS = {{ headers|tojson }};
    const FALLBACK_AUDIO = {{ fallback_audio|tojson }};
    const SAVE_FAILED = {{ save_failed|tojson }};

    const headerPattern = new RegExp(
        '(^|[^A-Za-z0-9_-])(' + HEADERS.map(h => h.replace(/[-\\/\\\\^$*+?.()|[\\]{}]/g, '\\\\$&')).join('|') + '):'
    );
    const markerPattern = /\\[\\s*TRAIT:[^\\]]*\\]/i;

    let messages = [{ role: 'system', content: WELCOME }];
    let interactionCount = 0;
    let isRecording = false, isProcessing = false, isTyping = false, ended = false;
    let permissionGranted = false;
    let transcript = '';
    let recognition = null;

    const audio = document.getElementById('player');
    let currentPlayingText = null;

    let cameraEnabled = false, frameCount = 0, frameTimer = null, cameraStream = null;

    const SpeechRecognition = window.SpeechRecognition || window.webkitSpeechRecognition;
    if (SpeechRecognition) {
        recognition = new SpeechRecognition();
        recognition.continuous = true;
        recognition.interimResults = true;
        recognition.lang = 'en-US';
        recognition.onresult = (event) => {
            transcript = Array.from(event.results).map(r => r[0].transcript).join('');
            render();
        };
    }

    function displayText(text) {
        const match = headerPattern.exec(text);
        const head = match ? text.slice(0, match.index + match[1].length) : text;
        return head.replace(markerPattern, '').trim();
    }

    function videoData() {
        return cameraEnabled ? { frameCount } : undefined;
    }

    async function requestPermission() {
        try {
            const stream = await navigator.mediaDevices.getUserMedia({ audio: true });
            stream.getTracks().forEach(t => t.stop());
            permissionGranted = true;
        } catch (e) {
            permissionGranted = false;
        }
        render();
        return permissionGranted;
    }

    async function postJSON(url, body) {
        const response = await fetch(url, {
            method: 'POST',
            headers: { 'Content-Type': 'application/json' },
            body: JSON.stringify(body),
        });
        const data = await response.json();
        if (!response.ok) throw new Error(`Chat API error: ${data.error || response.status}`);
        if (!data.success) throw new Error(`Chat API returned unsuccessful: ${data.error || 'Unknown error'}`);
        return data;
    }

    async function startRecording() {
        if (!permissionGranted && !(await requestPermission())) return;
        transcript = '';
        isRecording = true;
        if (recognition) recognition.start();
        render();
    }

    async function stopRecording() {
        isRecording = false;
        isProcessing = true;
        if (recognition) recognition.stop();

        messages.push({ role: 'user', content: transcript || PLACEHOLDER });
        const next = interactionCount + 1;
        isTyping = true;
        render();

        try {
            const data = await postJSON('/api/chat', { messages, interactionCount: next, videoData: videoData() });
            isTyping = false;
            messages.push({ role: 'assistant', content: data.response.message });
            interactionCount = next;
            render();
            if (document.getElementById('autoplay').checked) playResponseAudio(displayText(data.response.message));
            if (data.response.feedback || next >= THRESHOLD) {
                await finish(data.response.feedback || null, data.confidenceFeedback || null);
                return;
            }
        } catch (err) {
            isTyping = false;
            messages.push({
                role: 'system',
                content: `Error: ${err.message}. Please ensure your OpenAI API key is configured correctly and try again.`,
            });
        }
        isProcessing = false;
        render();
    }

    async function endSession() {
        if (interactionCount <= 0 || isProcessing || ended) return;
        isProcessing = true;
        isTyping = true;
        render();
        let feedback = null, confidence = null;
        try {
            const data = await postJSON('/api/chat', {
                messages,
                interactionCount: Math.min(interactionCount, THRESHOLD),
                videoData: videoData(),
                endSession: true,
            });
            feedback = data.response.feedback || null;
            confidence = data.confidenceFeedback || null;
        } catch (err) {
            console.error('End session failed, using default feedback', err);
        }
        isTyping = false;
        await finish(feedback, confidence);
    }

    async function finish(feedback, confidence) {
        ended = true;
        render();
        try {
            const data = await postJSON('/api/session/complete', {
                feedback,
                confidenceFeedback: cameraEnabled ? confidence : null,
                cameraWasUsed: cameraEnabled,
            });
            stopCamera();
            window.location.href = data.redirect;
        } catch (err) {
            console.error('Saving results failed', err);
            messages.push({
                role: 'system',
                content: `Error: ${err.message}. ${SAVE_FAILED}`,
            });
            ended = false;
            isProcessing = false;
            isTyping = false;
            render();
        }
    }

    async function playResponseAudio(text) {
        try {
            if (currentPlayingText === text && audio.src) {
                if (audio.paused) { await audio.play(); } else { audio.pause(); }
                return;
            }
            if (!audio.paused) audio.pause();
            currentPlayingText = text;
            const data = await postJSON('/api/speech', { text });
            audio.src = data.audioUrl || FALLBACK_AUDIO;
            await audio.play();
        } catch (err) {
            console.error('Audio playback failed', err);
        }
    }

    async function startCamera() {
        try {
            cameraStream = await navigator.mediaDevices.getUserMedia({ video: true });
            document.getElementById('preview').srcObject = cameraStream;
            cameraEnabled = true;
            frameTimer = setInterval(() => { if (!ended) frameCount += 1; }, 1000);
        } catch (e) {
            cameraEnabled = false;
            document.getElementById('camera').checked = false;
        }
    }

    function stopCamera() {
        if (frameTimer) clearInterval(frameTimer);
        frameTimer = null;
        if (cameraStream) cameraStream.getTracks().forEach(t => t.stop());
        cameraStream = null;
    }

    async function resetSession() {
        await fetch('/api/session/reset', { method: 'POST' });
        audio.pause();
        currentPlayingText = null;
        messages = [{ role: 'system', content: WELCOME }];
        interactionCount = 0;
        frameCount = 0;
        isRecording = isProcessing = isTyping = ended = false;
        transcript = '';
        render();
    }

    function render() {
        const box = document.getElementById('messages');
        box.innerHTML = '';
        messages.forEach((m) => {
            const el = document.createElement('div');
            el.className = 'msg ' + m.role;
            el.textContent = m.role === 'assistant' ? displayText(m.content) : m.content;
            if (m.role === 'assistant') el.onclick = () => playResponseAudio(displayText(m.content));
            box.appendChild(el);
        });

        const status = document.getElementById('status');
        if (!permissionGranted && isRecording === false && status.dataset.asked) {
            status.textContent = 'Microphone access denied. Please enable it in your browser settings.';
        } else if (isRecording) {
            status.textContent = transcript ? `Live transcription: ${transcript}` : 'Listening...';
        } else if (isTyping) {
            status.textContent = 'Your coworker is typing...';
        } else if (ended) {
            status.textContent = 'Preparing your results...';
        } else {
            status.textContent = '';
        }

        document.getElementById('turn').textContent = interactionCount;
        const mic = document.getElementById('mic');
        mic.textContent = isRecording ? '⏹ Stop' : '🎤 Start speaking';
        mic.disabled = (isProcessing && !isRecording) || ended;
        document.getElementById('end').disabled = interactionCount === 0 || isProcessing || isRecording || ended;
    }

    document.getElementById('mic').onclick = () => {
        document.getElementById('status').dataset.asked = '1';
        isRecording ? stopRecording() : startRecording();
    };
    document.getElementById('end').onclick = endSession;
    document.getElementById('reset').onclick = resetSession;
    document.getElementById('camera').onchange = (e) => {
        if (e.target.checked) { startCamera(); } else { stopCamera(); cameraEnabled = false; frameCount = 0; }
    };

    requestPermission();
    render();
</script>
</body>
</html>
"""

LOADING_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta http-equiv="refresh" content="{{ delay_seconds }};url=/chat">
    <title>TalkItOut - Results</title>
    {{ style|safe }}
</head>
<body>
<main style="text-align: center; padding-top: 120px;">
    <p class="muted">Loading your session results...</p>
</main>
<script>setTimeout(() => { window.location.href = '/chat'; }, {{ delay_ms }});</script>
</body>
</html>
"""

RESULTS_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>TalkItOut - Session Results</title>
    {{ style|safe }}
</head>
<body>
<main>
    <p><a href="/">&larr; Back to Home</a></p>
    <h1>Session Results</h1>

    <div class="card">
        <h2>Overall Performance</h2>
        <p>{{ results.summary }}</p>
        <p style="margin-top: 20px;">
            <a class="btn" href="/chat">Practice Again</a>
            <button class="btn secondary" onclick="window.print()">Save Results</button>
        </p>
    </div>

    {% for section in results.sections() %}
    <div class="card">
        <h2>{{ section.title }}{% if section.tag %}<span class="tag">{{ section.tag }}</span>{% endif %}</h2>
        {% for label, value in section.items %}
            {% if value is string %}
            <p><strong>{{ label }}:</strong> {{ value }}</p>
            {% else %}
            <h3>{{ label }}</h3>
            <ul>{% for item in value %}<li>{{ item }}</li>{% endfor %}</ul>
            {% endif %}
        {% endfor %}
    </div>
    {% endfor %}
</main>
</body>
</html>
"""


@app.route('/')
def index():
    return render_template_string(INDEX_TEMPLATE, style=BASE_STYLE, threshold=dialogue_gateway.threshold)


@app.route('/chat')
def chat_page():
    return render_template_string(
        CHAT_TEMPLATE,
        style=BASE_STYLE,
        threshold=dialogue_gateway.threshold,
        welcome=WELCOME_MESSAGE,
        placeholder=PLACEHOLDER_TRANSCRIPT,
        headers=list(ALL_HEADERS),
        fallback_audio=FALLBACK_AUDIO_URL,
        save_failed=SAVE_FAILED_MESSAGE,
    )


@app.route('/results')
def results_page():
    """Render the last finished session, or bounce back to the chat view."""
    results = load_results(session)
    if results is None:
        return render_template_string(
            LOADING_TEMPLATE,
            style=BASE_STYLE,
            delay_ms=REDIRECT_DELAY_MS,
            delay_seconds=REDIRECT_DELAY_MS / 1000,
        )
    return render_template_string(RESULTS_TEMPLATE, style=BASE_STYLE, results=results)


@app.route('/api/chat', methods=['POST'])
def chat():
    """Forward the conversation to the coworker persona."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'success': False, 'error': 'Request body must be JSON'}), 400

    try:
        history = parse_history(data.get('messages'))
    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    count = data.get('interactionCount')
    if isinstance(count, bool) or not isinstance(count, int) or count < 0:
        return jsonify({'success': False, 'error': "'interactionCount' must be a non-negative integer"}), 400

    video_data = data.get('videoData')
    if video_data is not None and not isinstance(video_data, dict):
        return jsonify({'success': False, 'error': "'videoData' must be an object"}), 400

    try:
        result = dialogue_gateway.chat(history, count, video_data, bool(data.get('endSession')))
    except Exception:
        logger.exception("Chat request failed")
        return jsonify({'success': False, 'error': 'Failed to process chat request'}), 500

    if result.simulated:
        logger.info("Simulated reply for interaction %d", count)
    return jsonify(result.to_response())


@app.route('/api/speech', methods=['POST'])
def speech():
    """Synthesize a reply. Always succeeds; falls back to the sample clip."""
    data = request.get_json(silent=True) or {}
    text = data.get('text') if isinstance(data, dict) else None
    result = speech_gateway.synthesize(text if isinstance(text, str) else "")
    return jsonify(result.to_response())


@app.route('/api/transcribe', methods=['POST'])
def transcribe():
    """Transcribe an uploaded recording (multipart field ``audio``)."""
    upload = request.files.get('audio')
    if upload is None:
        return jsonify({'success': False, 'error': 'No audio file provided'}), 400

    try:
        audio = upload.read()
    except OSError:
        logger.exception("Could not read uploaded audio")
        return jsonify({'success': False, 'error': 'Failed to transcribe audio'}), 500

    result = transcription_gateway.transcribe(
        audio,
        filename=upload.filename or 'audio.webm',
        mime_type=upload.mimetype or 'audio/webm',
    )
    return jsonify(result.to_response())


@app.route('/api/session/complete', methods=['POST'])
def complete_session():
    """Store a finished session's feedback for the results page."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'success': False, 'error': 'Request body must be JSON'}), 400

    camera_was_used = bool(data.get('cameraWasUsed'))
    try:
        if data.get('feedback'):
            feedback = FeedbackRecord.from_dict(data['feedback'])
        else:
            feedback = default_camera_feedback() if camera_was_used else default_feedback()
        confidence = (
            ConfidenceRecord.from_dict(data['confidenceFeedback'])
            if data.get('confidenceFeedback') else None
        )
    except ValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    session_id = write_results(session, feedback, confidence, camera_was_used)
    return jsonify({'success': True, 'sessionId': session_id, 'redirect': RESULTS_LOCATION})


@app.route('/api/session/reset', methods=['POST'])
def reset_session():
    clear_results(session)
    return jsonify({'success': True})


@app.route('/sample-audio.mp3')
def sample_audio():
    return send_from_directory(STATIC_DIR, 'sample-audio.mp3', mimetype='audio/mpeg')


if __name__ == '__main__':
    print(f"""
╔═══════════════════════════════════════════════════════════════╗
║     TALKITOUT - WORKPLACE CONFLICT PRACTICE                   ║
╠═══════════════════════════════════════════════════════════════╣
║  Voice Input: Browser speech recognition                      ║
║  Voice Output: ElevenLabs (sample clip without a key)         ║
║  Persona: OpenAI / Groq (simulated without a key)             ║
╚═══════════════════════════════════════════════════════════════╝

Starting web server...

Open your browser to: http://localhost:{settings.port}

Press Ctrl+C to stop the server.
    """)

    app.run(debug=True, host='0.0.0.0', port=settings.port)
