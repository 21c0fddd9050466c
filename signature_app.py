#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Signature Generator — CustomTkinter UI

Generates one personalized HTML signature per table row and either mails each
recipient their file or packages all files into a ZIP.

Key Features:
- Template + table pickers, re-validated on every change
- {{placeholder}} (validated) or {placeholder} (header driven) templates
- Strict or lenient handling of rows with the wrong number of columns
- SMTP delivery with an optional extra attachment, or ZIP download
- CSV header export for a template's placeholders

The window only holds the latest pipeline snapshot; all work is done by the
siggen engine.

Requirements: pip install -e .
"""

import logging
import threading
import tkinter as tk
from datetime import datetime
from pathlib import Path
from tkinter import filedialog

import customtkinter as ctk

from siggen.archive import write_archive
from siggen.config import (
    SmtpSettings,
    configure_logging,
    default_settings,
    load_settings,
    save_settings,
    set_smtp_password,
    get_smtp_password,
)
from siggen.errors import SigGenError
from siggen.mailer import check_connection, send_artifacts
from siggen.models import PipelineConfig, RowPolicy, TokenSyntax
from siggen.pipeline import default_output_dir, iter_batch, load_state
from siggen.placeholders import write_csv_template


logger = logging.getLogger("siggen.app")

APP_TITLE = "Signature Generator"


# -------------------------
# Toast Notification System
# -------------------------
class ToastManager:
    """
    Toast notifications in the bottom-right corner of the app, color coded by
    kind and dismissed automatically.
    """

    COLORS = {
        "info":    {"bg": "#1f2937", "fg": "#ffffff"},
        "success": {"bg": "#065f46", "fg": "#ffffff"},
        "warning": {"bg": "#92400e", "fg": "#ffffff"},
        "error":   {"bg": "#7f1d1d", "fg": "#ffffff"},
    }

    def __init__(self, root: ctk.CTk):
        self.root = root
        self.active = []

    def show(self, message: str, kind: str = "info", duration_ms: int = 2400):
        cfg = self.COLORS.get(kind, self.COLORS["info"])

        toast = ctk.CTkToplevel(self.root)
        toast.overrideredirect(True)
        toast.attributes("-topmost", True)

        frame = ctk.CTkFrame(toast, fg_color=cfg["bg"], corner_radius=10)
        frame.pack(fill="both", expand=True)
        label = ctk.CTkLabel(frame, text=message, text_color=cfg["fg"], wraplength=380, justify="left")
        label.pack(padx=14, pady=10)

        self.root.update_idletasks()
        rx, ry = self.root.winfo_rootx(), self.root.winfo_rooty()
        rw, rh = self.root.winfo_width(), self.root.winfo_height()
        width = min(420, max(260, int(12 * (len(message) ** 0.55))))
        height = label.winfo_reqheight() + 24
        offset_y = 16 + (len(self.active) * (height + 10))
        toast.geometry(f"{width}x{height}+{rx + rw - width - 16}+{ry + rh - height - offset_y}")

        self.active.append(toast)

        def _destroy():
            if toast in self.active:
                self.active.remove(toast)
                toast.destroy()

        self.root.after(duration_ms, _destroy)


class SignatureApp(ctk.CTk):
    """Main window: inputs on top, delivery in the middle, log at the bottom."""

    def __init__(self):
        super().__init__()

        ctk.set_appearance_mode("system")
        ctk.set_default_color_theme("blue")

        self.title(APP_TITLE)
        self.geometry("980x760")
        self.toast = ToastManager(self)

        # ========== APPLICATION STATE ==========
        self.settings = load_settings()

        self.template_path = tk.StringVar(value=self.settings["template_path"])
        self.table_path = tk.StringVar(value=self.settings["table_path"])
        self.extra_path = tk.StringVar(value=self.settings["extra_attachment_path"])
        self.attach_extra = tk.BooleanVar(value=bool(self.settings["attach_extra"]))
        self.delivery_mode = tk.StringVar(value=self.settings["delivery_mode"])
        self.subject = tk.StringVar(value=self.settings["subject"])

        cfg = PipelineConfig.from_dict(self.settings["pipeline"])
        self.syntax = tk.StringVar(value=cfg.syntax.value)
        self.strict = tk.BooleanVar(value=cfg.strict)
        self.name_suffix = tk.StringVar(value=cfg.name_suffix)

        smtp = self.settings["smtp"]
        self.smtp_host = tk.StringVar(value=smtp["host"])
        self.smtp_port = tk.StringVar(value=str(smtp["port"]))
        self.smtp_ssl = tk.BooleanVar(value=bool(smtp["use_ssl"]))
        self.smtp_user = tk.StringVar(value=smtp["username"])
        self.smtp_password = tk.StringVar(value=get_smtp_password(smtp["username"]))

        # latest pipeline snapshot and batch output
        self._state = None
        self._artifacts = []
        self._batch = None
        self._cancel = threading.Event()

        self._build_ui()
        self._refresh_state()

        for var in (self.template_path, self.table_path, self.syntax, self.strict, self.name_suffix):
            var.trace_add("write", lambda *_: self._refresh_state())
        self.delivery_mode.trace_add("write", lambda *_: self._update_mode_ui())

        self.protocol("WM_DELETE_WINDOW", self._on_close)

    # =========================
    # Layout
    # =========================

    def _build_ui(self):
        self.grid_columnconfigure(0, weight=1)
        self.grid_rowconfigure(3, weight=1)

        # --------- Inputs ----------
        inputs = ctk.CTkFrame(self)
        inputs.grid(row=0, column=0, sticky="ew", padx=14, pady=(14, 6))
        inputs.grid_columnconfigure(1, weight=1)

        self._path_row(inputs, 0, "HTML Template", self.template_path, [("HTML", "*.html *.htm")])
        self._path_row(inputs, 1, "Table (CSV)", self.table_path, [("CSV / TSV", "*.csv *.tsv *.txt")])

        opts = ctk.CTkFrame(inputs, fg_color="transparent")
        opts.grid(row=2, column=0, columnspan=4, sticky="ew", pady=(6, 6))
        ctk.CTkLabel(opts, text="Placeholders").pack(side="left", padx=(6, 6))
        ctk.CTkSegmentedButton(
            opts, values=[TokenSyntax.DOUBLE.value, TokenSyntax.SINGLE.value], variable=self.syntax
        ).pack(side="left")
        ctk.CTkCheckBox(opts, text="Skip rows with wrong column count", variable=self.strict).pack(side="left", padx=12)
        ctk.CTkLabel(opts, text="File suffix").pack(side="left", padx=(12, 6))
        ctk.CTkEntry(opts, textvariable=self.name_suffix, width=140).pack(side="left")
        ctk.CTkButton(opts, text="Export CSV header…", command=self._export_csv_template).pack(side="right", padx=6)

        self.status_label = ctk.CTkLabel(inputs, text="", anchor="w")
        self.status_label.grid(row=3, column=0, columnspan=4, sticky="ew", padx=6, pady=(0, 6))

        # --------- Delivery ----------
        delivery = ctk.CTkFrame(self)
        delivery.grid(row=1, column=0, sticky="ew", padx=14, pady=6)
        delivery.grid_columnconfigure(1, weight=1)

        mode = ctk.CTkFrame(delivery, fg_color="transparent")
        mode.grid(row=0, column=0, columnspan=4, sticky="w", padx=6, pady=(6, 0))
        ctk.CTkRadioButton(mode, text="Send Emails", variable=self.delivery_mode, value="email").pack(side="left")
        ctk.CTkRadioButton(mode, text="Download ZIP", variable=self.delivery_mode, value="zip").pack(side="left", padx=12)

        self.email_panel = ctk.CTkFrame(delivery, fg_color="transparent")
        self.email_panel.grid(row=1, column=0, columnspan=4, sticky="ew")
        self.email_panel.grid_columnconfigure(1, weight=1)

        ctk.CTkLabel(self.email_panel, text="Subject").grid(row=0, column=0, sticky="w", padx=6, pady=4)
        ctk.CTkEntry(self.email_panel, textvariable=self.subject).grid(row=0, column=1, columnspan=5, sticky="ew", padx=6)

        ctk.CTkLabel(self.email_panel, text="Body").grid(row=1, column=0, sticky="nw", padx=6, pady=4)
        self.body_box = ctk.CTkTextbox(self.email_panel, height=80, wrap="word")
        self.body_box.grid(row=1, column=1, columnspan=5, sticky="ew", padx=6, pady=4)
        self.body_box.insert("1.0", self.settings["body"])

        ctk.CTkCheckBox(self.email_panel, text="Attach extra file", variable=self.attach_extra).grid(
            row=2, column=0, sticky="w", padx=6
        )
        ctk.CTkEntry(self.email_panel, textvariable=self.extra_path).grid(row=2, column=1, columnspan=4, sticky="ew", padx=6)
        ctk.CTkButton(
            self.email_panel, text="Browse", width=80,
            command=lambda: self._browse(self.extra_path, [("PDF", "*.pdf"), ("All files", "*.*")]),
        ).grid(row=2, column=5, padx=6)

        smtp = ctk.CTkFrame(self.email_panel, fg_color="transparent")
        smtp.grid(row=3, column=0, columnspan=6, sticky="ew", pady=(6, 6))
        ctk.CTkLabel(smtp, text="SMTP host").pack(side="left", padx=(6, 4))
        ctk.CTkEntry(smtp, textvariable=self.smtp_host, width=180).pack(side="left")
        ctk.CTkLabel(smtp, text="Port").pack(side="left", padx=(10, 4))
        ctk.CTkEntry(smtp, textvariable=self.smtp_port, width=60).pack(side="left")
        ctk.CTkSwitch(smtp, text="SSL", variable=self.smtp_ssl).pack(side="left", padx=10)
        ctk.CTkLabel(smtp, text="User").pack(side="left", padx=(10, 4))
        ctk.CTkEntry(smtp, textvariable=self.smtp_user, width=180).pack(side="left")
        ctk.CTkLabel(smtp, text="Password").pack(side="left", padx=(10, 4))
        ctk.CTkEntry(smtp, textvariable=self.smtp_password, width=140, show="•").pack(side="left")
        ctk.CTkButton(smtp, text="Test SMTP", width=90, command=self._test_smtp).pack(side="left", padx=10)

        self.hint_label = ctk.CTkLabel(delivery, text="", text_color=("#444", "#aaa"), anchor="w")
        self.hint_label.grid(row=2, column=0, columnspan=4, sticky="ew", padx=6, pady=(0, 6))

        # --------- Actions ----------
        actions = ctk.CTkFrame(self, fg_color="transparent")
        actions.grid(row=2, column=0, sticky="ew", padx=14, pady=6)
        actions.grid_columnconfigure((0, 1, 2), weight=1)

        self.btn_generate = ctk.CTkButton(actions, text="Generate", command=self._start_generate)
        self.btn_generate.grid(row=0, column=0, sticky="ew", padx=4)
        self.btn_cancel = ctk.CTkButton(actions, text="Cancel", command=self._cancel.set, state="disabled")
        self.btn_cancel.grid(row=0, column=1, sticky="ew", padx=4)
        self.btn_run = ctk.CTkButton(actions, text="Send Emails", command=self._run_delivery)
        self.btn_run.grid(row=0, column=2, sticky="ew", padx=4)

        self.progress = ctk.CTkProgressBar(actions)
        self.progress.grid(row=1, column=0, columnspan=3, sticky="ew", padx=4, pady=(8, 0))
        self.progress.set(0)

        # --------- Log ----------
        self.log_box = ctk.CTkTextbox(self, wrap="word", state="disabled")
        self.log_box.grid(row=3, column=0, sticky="nsew", padx=14, pady=(6, 14))

        self._update_mode_ui()

    def _path_row(self, parent, row, label, var, filetypes):
        ctk.CTkLabel(parent, text=label).grid(row=row, column=0, sticky="w", padx=6, pady=(6, 0))
        ctk.CTkEntry(parent, textvariable=var).grid(row=row, column=1, sticky="ew", padx=6, pady=(6, 0))
        ctk.CTkButton(parent, text="Browse", width=80, command=lambda: self._browse(var, filetypes)).grid(
            row=row, column=2, padx=(0, 6), pady=(6, 0)
        )
        ctk.CTkButton(parent, text="Clear", width=60, command=lambda: var.set("")).grid(
            row=row, column=3, padx=(0, 6), pady=(6, 0)
        )

    def _browse(self, var, filetypes):
        fn = filedialog.askopenfilename(filetypes=filetypes)
        if fn:
            var.set(fn)

    def _update_mode_ui(self):
        send = self.delivery_mode.get() == "email"
        if send:
            self.email_panel.grid()
            self.hint_label.configure(text="Will send each recipient their HTML signature as an attachment using SMTP.")
        else:
            self.email_panel.grid_remove()
            self.hint_label.configure(text="Will package all generated signatures into a ZIP (extra attachment is not included).")
        self.btn_run.configure(text="Send Emails" if send else "Download ZIP")
        self._update_action_buttons()

    def _update_action_buttons(self):
        busy = self._batch is not None
        ready = bool(self._state and self._state.ready)
        self.btn_generate.configure(state="normal" if ready and not busy else "disabled")
        self.btn_cancel.configure(state="normal" if busy else "disabled")
        self.btn_run.configure(state="normal" if self._artifacts and not busy else "disabled")

    # =========================
    # Pipeline snapshot
    # =========================

    def _config(self) -> PipelineConfig:
        return PipelineConfig(
            syntax=TokenSyntax(self.syntax.get()),
            row_policy=RowPolicy.STRICT if self.strict.get() else RowPolicy.LENIENT,
            name_suffix=self.name_suffix.get().strip(),
        )

    def _refresh_state(self):
        """Rebuild the snapshot from the current inputs. Previous artifacts are dropped."""
        self._artifacts = []
        template, table = self.template_path.get().strip(), self.table_path.get().strip()
        template_ok = bool(template) and Path(template).is_file()
        table_ok = bool(table) and Path(table).is_file()

        self._state = None
        schema = "—"
        if template_ok and table_ok:
            try:
                self._state = load_state(template, table, self._config())
            except SigGenError as e:
                self.log(str(e))
            else:
                schema = self._state.validation.status.value.replace("_", " ")
                if self._state.config.syntax is TokenSyntax.SINGLE:
                    schema = "header driven"
                for line in self._state.validation.diagnostics:
                    self.log(line)

        self.status_label.configure(
            text=f"Template: {'OK' if template_ok else 'Missing'} • Data: {'OK' if table_ok else 'Missing'} • Schema: {schema}"
        )
        self._update_action_buttons()

    # =========================
    # Generate (cooperative, one row per tick)
    # =========================

    def _start_generate(self):
        self._clear_log()
        if not (self._state and self._state.ready):
            self.log("Please select both an HTML template and a matching table before generating.")
            return

        self._artifacts = []
        self._cancel.clear()
        self._out_dir = default_output_dir()
        self._batch = iter_batch(self._state, self._out_dir, cancel=self._cancel)
        self.progress.set(0)
        self._update_action_buttons()
        self.after(1, self._tick)

    def _tick(self):
        try:
            step = next(self._batch)
        except StopIteration:
            self._finish_generate()
            return
        except SigGenError as e:
            self.log(f"Generation error: {e}")
            self._finish_generate()
            return

        if step.artifact is not None:
            self._artifacts.append(step.artifact)
        if step.diagnostic:
            self.log(step.diagnostic)
        self.progress.set(step.attempted / max(step.total, 1))
        self.after(1, self._tick)

    def _finish_generate(self):
        self._batch = None
        if self._cancel.is_set():
            self.log(f"Cancelled. {len(self._artifacts)} signature(s) kept in: {self._out_dir}")
        else:
            self.log(f"Generated {len(self._artifacts)} signatures into: {self._out_dir}")
        self._update_action_buttons()

    # =========================
    # Delivery
    # =========================

    def _smtp_settings(self) -> SmtpSettings:
        try:
            port = int(self.smtp_port.get().strip() or 587)
        except ValueError:
            port = 587
        return SmtpSettings(
            host=self.smtp_host.get().strip(),
            port=port,
            use_ssl=self.smtp_ssl.get(),
            username=self.smtp_user.get().strip(),
            password=self.smtp_password.get(),
        )

    def _run_delivery(self):
        self._clear_log()
        if not self._artifacts:
            self.log("Generate signatures first!")
            return
        if self.delivery_mode.get() == "email":
            self._send_emails()
        else:
            self._download_zip()

    def _advance(self, done, total):
        self.progress.set(done / max(total, 1))
        self.update_idletasks()

    def _send_emails(self):
        total = len(self._artifacts)
        done = [0]

        def _on_item(_artifact):
            done[0] += 1
            self._advance(done[0], total)

        extra = self.extra_path.get().strip() if self.attach_extra.get() else None
        report = send_artifacts(
            self._artifacts,
            self._smtp_settings(),
            subject=self.subject.get(),
            body=self.body_box.get("1.0", "end").strip(),
            extra_attachment=extra or None,
            on_item=_on_item,
        )
        for line in report.diagnostics:
            self.log(line)
        if report.aborted:
            self.toast.show(str(report.error), kind="error")
        else:
            self.toast.show(f"Sent {len(report.sent)} email(s).", kind="success")

    def _download_zip(self):
        zip_path = filedialog.asksaveasfilename(
            title="Save ZIP", initialfile="signatures.zip", defaultextension=".zip", filetypes=[("ZIP", "*.zip")]
        )
        if not zip_path:
            return

        total = len(self._artifacts)
        done = [0]

        def _on_item(_artifact):
            done[0] += 1
            self._advance(done[0], total)

        try:
            path = write_archive(self._artifacts, zip_path, on_item=_on_item)
        except SigGenError as e:
            self.log(str(e))
            self.toast.show("ZIP export failed.", kind="error")
            return
        self.log(f"ZIP saved: {path} (extra attachment excluded)")
        self.toast.show(f"Saved {Path(path).name}", kind="success")

    def _test_smtp(self):
        self.log("Testing SMTP connection...")
        ok, message = check_connection(self._smtp_settings())
        self.log(("✅ " if ok else "❌ ") + message)

    def _export_csv_template(self):
        if not self._state or not self._state.placeholders:
            self.toast.show("Select a template with {{placeholders}} first.", kind="warning")
            return
        fn = filedialog.asksaveasfilename(
            title="Save CSV header", initialfile="signatures_template.csv",
            defaultextension=".csv", filetypes=[("CSV", "*.csv")],
        )
        if not fn:
            return
        try:
            write_csv_template(fn, self._state.placeholders)
        except SigGenError as e:
            self.toast.show(str(e), kind="error")
            return
        self.toast.show(f"Saved {Path(fn).name}", kind="success")

    # =========================
    # Log / lifecycle
    # =========================

    def log(self, text: str):
        self.log_box.configure(state="normal")
        self.log_box.insert("end", f"[{datetime.now():%H:%M:%S}] {text}\n")
        self.log_box.see("end")
        self.log_box.configure(state="disabled")

    def _clear_log(self):
        self.log_box.configure(state="normal")
        self.log_box.delete("1.0", "end")
        self.log_box.configure(state="disabled")

    def _collect_settings(self) -> dict:
        data = default_settings()
        data.update({
            "template_path": self.template_path.get().strip(),
            "table_path": self.table_path.get().strip(),
            "pipeline": self._config().to_dict(),
            "delivery_mode": self.delivery_mode.get(),
            "subject": self.subject.get(),
            "body": self.body_box.get("1.0", "end").rstrip("\n"),
            "attach_extra": self.attach_extra.get(),
            "extra_attachment_path": self.extra_path.get().strip(),
        })
        smtp = self._smtp_settings()
        data["smtp"] = {
            "host": smtp.host,
            "port": smtp.port,
            "use_ssl": smtp.use_ssl,
            "username": smtp.username,
            "sender": self.settings["smtp"].get("sender", ""),
        }
        return data

    def _on_close(self):
        self._cancel.set()
        try:
            save_settings(self._collect_settings())
            set_smtp_password(self.smtp_user.get().strip(), self.smtp_password.get())
        except OSError:
            logger.exception("Failed to save settings.")
        self.destroy()


def main():
    configure_logging("INFO")
    app = SignatureApp()
    app.mainloop()


if __name__ == "__main__":
    main()
