"""Browser-side reload client appended to HTML pages."""

from string import Template

from livepoll.protocol import BODY_SHUTDOWN, REQUEST_RELOAD_WAIT, REQUEST_STATE, WATCHER_HEADER

_SCRIPT = Template("""<script>
;(async () => {
  const sleep = (ms) => new Promise((resolve) => setTimeout(resolve, ms))
  const getState = (msg) => fetch("$path", {headers: {"$header": msg}}).then((res) => {
    if (res.headers.get("$header")) {
      return res.text()
    }
    return "failed"
  }).catch(() => "failed")
  console.info("[livepoll] Connected.")
  while (true) {
    const text = await getState("$reload_wait")
    if (text === "failed" || text === "$shutdown") {
      await sleep($retry_ms)
      continue
    }
    if (text === "reload") {
      console.info("[livepoll] File change detected, polling state.")
      await getState("$state")
      while (true) {
        const state = await getState("$state")
        if (state === "ok") {
          break
        }
        await sleep($retry_ms)
      }
      location.reload()
    }
  }
})()
</script>""")


_JS_ESCAPES = [
    ("\\", "\\\\"),
    ('"', '\\"'),
    ("\n", "\\n"),
    ("\r", "\\r"),
    ("\u2028", "\\u2028"),
    ("\u2029", "\\u2029"),
    ("</", "<\\/"),
]


def escape_path(path: str) -> str:
    """Escape a request path for use inside a double-quoted JS string.

    Line terminators are written as escapes and ``</`` becomes ``<\\/`` so the
    string can neither end early nor close the surrounding ``<script>`` tag.
    Backslashes go first so the escapes added afterwards stay intact.
    """
    for raw, escaped in _JS_ESCAPES:
        path = path.replace(raw, escaped)
    return path


def render_client_script(path: str, retry_interval: float = 1.0) -> str:
    """Render the reload client for a page served at ``path``.

    The client long-polls the same path the page came from, so that route
    must pass through the live-reload middleware.
    """
    return _SCRIPT.substitute(
        path=escape_path(path),
        header=WATCHER_HEADER,
        reload_wait=REQUEST_RELOAD_WAIT,
        state=REQUEST_STATE,
        shutdown=BODY_SHUTDOWN,
        retry_ms=int(retry_interval * 1000),
    )
