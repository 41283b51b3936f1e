import tkinter as tk
from tkinter import messagebox, scrolledtext, simpledialog
from tkinter import ttk
import threading

from chat_core.api.service import get_default_orchestrator, get_default_state
from chat_core.domain.exceptions import BusinessError
from chat_core.providers.registry import available_models


class App:
    def __init__(self, root):
        self.root = root
        self.root.title("Gemini Chat")
        self.state = get_default_state()
        self.orchestrator = get_default_orchestrator()
        self.edit_index = None
        main = tk.PanedWindow(root, orient=tk.HORIZONTAL)
        main.pack(fill=tk.BOTH, expand=True)
        left = tk.Frame(main)
        right = tk.Frame(main)
        main.add(left, minsize=260)
        main.add(right)

        # 会话列表
        tk.Label(left, text="会话").pack(anchor=tk.W)
        self.conv_list = tk.Listbox(left, height=10, exportselection=False)
        self.conv_list.pack(fill=tk.BOTH, expand=True)
        self.conv_list.bind("<<ListboxSelect>>", self.on_select_conv)
        lf_btns = tk.Frame(left)
        lf_btns.pack(fill=tk.X)
        tk.Button(lf_btns, text="新建", command=self.on_new_conv).pack(side=tk.LEFT)
        tk.Button(lf_btns, text="重命名", command=self.on_rename_conv).pack(side=tk.LEFT)
        tk.Button(lf_btns, text="删除", command=self.on_delete_conv).pack(side=tk.LEFT)
        tk.Button(lf_btns, text="清空", command=self.on_clear_conv).pack(side=tk.LEFT)
        tk.Button(lf_btns, text="导出", command=self.on_export).pack(side=tk.LEFT)

        # 密钥与模型
        settings_box = tk.LabelFrame(left, text="设置")
        settings_box.pack(fill=tk.X)
        row = tk.Frame(settings_box)
        row.pack(fill=tk.X)
        tk.Label(row, text="API Key").pack(side=tk.LEFT)
        self.key_entry = tk.Entry(row, show="*")
        self.key_entry.insert(0, self.state.credential())
        self.key_entry.pack(side=tk.LEFT, fill=tk.X, expand=True)
        tk.Button(row, text="保存", command=self.on_save_key).pack(side=tk.LEFT)
        row = tk.Frame(settings_box)
        row.pack(fill=tk.X)
        tk.Label(row, text="模型").pack(side=tk.LEFT)
        models = available_models()
        if self.state.selected_model not in models:
            models.append(self.state.selected_model)
        self.model_box = ttk.Combobox(row, values=models)
        self.model_box.set(self.state.selected_model)
        self.model_box.bind("<<ComboboxSelected>>", self.on_model_change)
        self.model_box.bind("<Return>", self.on_model_change)
        self.model_box.pack(side=tk.LEFT, fill=tk.X, expand=True)

        # 系统指令与预设
        instr_box = tk.LabelFrame(left, text="系统指令")
        instr_box.pack(fill=tk.BOTH, expand=True)
        row = tk.Frame(instr_box)
        row.pack(fill=tk.X)
        self.preset_box = ttk.Combobox(row, state="readonly")
        self.preset_box.bind("<<ComboboxSelected>>", self.on_select_preset)
        self.preset_box.pack(side=tk.LEFT, fill=tk.X, expand=True)
        tk.Button(row, text="保存", command=self.on_save_preset).pack(side=tk.LEFT)
        tk.Button(row, text="删除", command=self.on_delete_preset).pack(side=tk.LEFT)
        self.instruction = tk.Text(instr_box, height=6)
        self.instruction.pack(fill=tk.BOTH, expand=True)
        self.instruction.bind("<FocusOut>", self.on_instruction_change)

        # 对话区
        self.chat = scrolledtext.ScrolledText(right, width=80, height=24)
        self.chat.pack(fill=tk.BOTH, expand=True)
        self.chat.tag_config("user", foreground="#1a73e8")
        self.chat.tag_config("model", foreground="#34a853")
        self.chat.tag_config("system", foreground="#5f6368")
        tk.Label(right, text="消息").pack(anchor=tk.W)
        self.msg_list = tk.Listbox(right, height=6, exportselection=False)
        self.msg_list.pack(fill=tk.X)
        msg_btns = tk.Frame(right)
        msg_btns.pack(fill=tk.X)
        self.resend_btn = tk.Button(msg_btns, text="再发送", command=self.on_resend)
        self.resend_btn.pack(side=tk.LEFT)
        tk.Button(msg_btns, text="编辑", command=self.on_edit).pack(side=tk.LEFT)
        self.cancel_btn = tk.Button(msg_btns, text="取消编辑", command=self.on_cancel_edit, state=tk.DISABLED)
        self.cancel_btn.pack(side=tk.LEFT)
        self.input = tk.Text(right, height=4)
        self.input.pack(fill=tk.X)
        self.input.bind("<Return>", self.on_send_event)
        self.send_btn = tk.Button(right, text="发送", command=self.on_send)
        self.send_btn.pack(anchor=tk.E)
        self.status = tk.Label(right, text="准备就绪")
        self.status.pack(fill=tk.X)
        self.refresh()

    # ---- 渲染 ----

    def refresh(self):
        current = self.state.current
        self.conv_list.delete(0, tk.END)
        for i, c in enumerate(self.state.conversations.conversations):
            self.conv_list.insert(tk.END, c.name)
            if c.id == current.id:
                self.conv_list.selection_set(i)
        self.preset_box.config(values=[""] + self.state.presets.names())
        self.preset_box.set(self.state.current_preset_name() or "")
        self.instruction.delete(1.0, tk.END)
        self.instruction.insert(tk.END, current.system_instruction)
        self.chat.delete(1.0, tk.END)
        self.msg_list.delete(0, tk.END)
        for i, m in enumerate(current.messages):
            label = "🧑" if m.role == "user" else "🤖"
            self.chat.insert(tk.END, f"{label}: {m.text}\n\n", m.role)
            self.msg_list.insert(tk.END, f"{i}:{m.role}: {m.text[:40]}")
        self.chat.see(tk.END)
        busy = self.orchestrator.is_busy(current.id)
        self.send_btn.config(state=tk.DISABLED if busy else tk.NORMAL)
        self.resend_btn.config(state=tk.DISABLED if busy else tk.NORMAL)
        self.status.config(text="发送中..." if busy else f"会话: {current.name}")

    # ---- 会话操作 ----

    def on_select_conv(self, event):
        sel = self.conv_list.curselection()
        if not sel:
            return
        conv = self.state.conversations.conversations[sel[0]]
        self.on_cancel_edit()
        self.state.switch_conversation(conv.id)
        self.refresh()

    def on_new_conv(self):
        self.on_cancel_edit()
        self.state.new_conversation()
        self.refresh()

    def on_rename_conv(self):
        current = self.state.current
        name = simpledialog.askstring("重命名", "会话名称:", initialvalue=current.name, parent=self.root)
        if name is not None:
            self.state.rename_conversation(current.id, name)
            self.refresh()

    def on_delete_conv(self):
        current = self.state.current
        if messagebox.askyesno("删除", f"删除会话「{current.name}」？", parent=self.root):
            self.on_cancel_edit()
            self.state.delete_conversation(current.id)
            self.refresh()

    def on_clear_conv(self):
        self.on_cancel_edit()
        self.state.clear_current()
        self.refresh()

    def on_export(self):
        path = self.state.export_current()
        self.status.config(text=f"已导出: {path}")

    # ---- 设置 ----

    def on_save_key(self):
        self.state.set_credential(self.key_entry.get())
        messagebox.showinfo("API Key", "API 密钥已保存", parent=self.root)

    def on_model_change(self, event=None):
        model = self.model_box.get().strip()
        if model:
            self.state.set_model(model)

    def on_instruction_change(self, event=None):
        text = self.instruction.get(1.0, tk.END).rstrip("\n")
        if text != self.state.current.system_instruction:
            self.state.set_system_instruction(text)
            self.preset_box.set(self.state.current_preset_name() or "")

    def on_select_preset(self, event):
        self.state.apply_preset(self.preset_box.get())
        self.refresh()

    def on_save_preset(self):
        self.on_instruction_change()
        name = simpledialog.askstring("预设", "预设名称:", parent=self.root)
        if not name:
            return
        try:
            self.state.save_preset(name)
        except BusinessError as e:
            messagebox.showwarning("预设", e.message, parent=self.root)
        self.refresh()

    def on_delete_preset(self):
        name = self.preset_box.get()
        if name and messagebox.askyesno("预设", f"删除预设「{name}」？", parent=self.root):
            self.state.delete_preset(name)
            self.refresh()

    # ---- 消息 ----

    def _selected_index(self):
        sel = self.msg_list.curselection()
        return sel[0] if sel else None

    def on_resend(self):
        index = self._selected_index()
        if index is None:
            return
        cid = self.state.current.id
        self._run(lambda: self.orchestrator.resend(cid, index))

    def on_edit(self):
        index = self._selected_index()
        if index is None:
            return
        self.edit_index = index
        self.input.delete(1.0, tk.END)
        self.input.insert(tk.END, self.state.current.messages[index].text)
        self.send_btn.config(text="再发送")
        self.cancel_btn.config(state=tk.NORMAL)

    def on_cancel_edit(self):
        self.edit_index = None
        self.input.delete(1.0, tk.END)
        self.send_btn.config(text="发送")
        self.cancel_btn.config(state=tk.DISABLED)

    def on_send(self):
        text = self.input.get(1.0, tk.END).strip()
        if not text:
            return
        self.on_instruction_change()
        cid = self.state.current.id
        index = self.edit_index
        self.on_cancel_edit()
        if index is not None:
            self._run(lambda: self.orchestrator.edit_message(cid, index, text))
        else:
            self._run(lambda: self.orchestrator.send(cid, text))

    def on_send_event(self, event):
        if event.state & 0x0001:  # Shift+Enter 换行
            return None
        self.on_send()
        return "break"

    def _run(self, call):
        def worker():
            try:
                call()
                self.root.after(0, lambda: self.on_response(None))
            except BusinessError as e:
                self.root.after(0, lambda err=e: self.on_response(err))

        threading.Thread(target=worker, daemon=True).start()
        # user 消息已乐观提交，立刻刷新
        self.root.after(50, self.refresh)

    def on_response(self, err):
        self.refresh()
        if err:
            self.chat.insert(tk.END, f"[系统] 错误: {err.message}\n", "system")
            self.status.config(text="错误")


def main():
    root = tk.Tk()
    App(root)
    root.mainloop()


if __name__ == "__main__":
    main()
