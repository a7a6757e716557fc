from PyQt5.QtCore import Qt, QTimer
from PyQt5.QtGui import QFont
from PyQt5.QtWidgets import (
    QHBoxLayout, QHeaderView, QLabel, QLineEdit, QListWidget, QListWidgetItem, QMainWindow,
    QPushButton, QSplitter, QTextEdit, QTreeWidget, QTreeWidgetItem, QVBoxLayout, QWidget
)

from payload_format import payload_preview


class TopicListWidget(QListWidget):
    """Flat list of the visible topics. Keys are forwarded to the window instead of moving the Qt selection."""

    def __init__(self, viewer):
        super().__init__()
        self.viewer = viewer

    def keyPressEvent(self, event):
        app = self.viewer.app
        actions = {
            Qt.Key_Down: app.select_next,
            Qt.Key_Up: app.select_previous,
            Qt.Key_Home: app.select_first,
            Qt.Key_End: app.select_last,
            Qt.Key_Left: app.close_selected,
            Qt.Key_Right: app.open_selected,
            Qt.Key_Return: app.toggle_selected,
            Qt.Key_Enter: app.toggle_selected,
            Qt.Key_Space: app.toggle_selected,
            Qt.Key_Q: self.viewer.close,
        }
        action = actions.get(event.key())
        if action is None:
            super().keyPressEvent(event)
            return
        action()
        self.viewer.refresh()


class MqttViewerWindow(QMainWindow):
    def __init__(self, app, refresh_interval=500):
        super().__init__()
        self.app = app
        self._details_key = None  # Topic and message count shown in the detail view
        self.setWindowTitle("MQTT Topic Viewer")
        self.setGeometry(100, 100, 1000, 600)

        central = QWidget()
        main_layout = QVBoxLayout()
        central.setLayout(main_layout)
        self.setCentralWidget(central)

        self.init_header(main_layout)
        self.init_goto_bar(main_layout)

        splitter = QSplitter(Qt.Horizontal)
        splitter.addWidget(self.init_overview())
        splitter.addWidget(self.init_details())
        splitter.setSizes([350, 650])
        main_layout.addWidget(splitter)

        # Set up timer for redrawing
        self.refresh_interval = refresh_interval  # milliseconds
        self.setup_timers()
        self.refresh()

    def setup_timers(self):
        self.timer = QTimer()
        self.timer.timeout.connect(self.refresh)
        self.timer.start(self.refresh_interval)

    # Header
    def init_header(self, layout):
        self.broker_label = QLabel(f"MQTT Broker: {self.app.host} (Port {self.app.port})")
        self.subscribed_label = QLabel(f"Subscribed Topic: {self.app.subscribe_topic}")
        self.selected_label = QLabel()
        self.status_label = QLabel()
        for label in (self.broker_label, self.subscribed_label, self.selected_label, self.status_label):
            layout.addWidget(label)

    def init_goto_bar(self, layout):
        h_layout = QHBoxLayout()
        self.topic_input = QLineEdit()
        self.topic_input.setPlaceholderText("Go to topic...")
        self.topic_input.returnPressed.connect(self.goto_topic)
        self.goto_button = QPushButton("Go")
        self.goto_button.clicked.connect(self.goto_topic)
        h_layout.addWidget(self.topic_input)
        h_layout.addWidget(self.goto_button)
        layout.addLayout(h_layout)

    def goto_topic(self):
        topic = self.topic_input.text()
        if topic:
            self.app.select_topic(topic)
            self.refresh()
            self.topic_list.setFocus()

    # Topic overview
    def init_overview(self):
        widget = QWidget()
        layout = QVBoxLayout()
        self.overview_title = QLabel("Topics (0)")
        self.topic_list = TopicListWidget(self)
        self.topic_list.itemClicked.connect(self.on_item_clicked)
        self.topic_list.itemDoubleClicked.connect(self.on_item_double_clicked)
        layout.addWidget(self.overview_title)
        layout.addWidget(self.topic_list)
        widget.setLayout(layout)
        return widget

    def on_item_clicked(self, item):
        self.app.select_index(self.topic_list.row(item))
        self.refresh()

    def on_item_double_clicked(self, item):
        self.app.select_index(self.topic_list.row(item))
        self.app.toggle_selected()
        self.refresh()

    # Details of the selected topic
    def init_details(self):
        widget = QWidget()
        layout = QVBoxLayout()

        self.payload_title = QLabel("Payload")
        self.payload_display = QTextEdit()
        self.payload_display.setReadOnly(True)
        self.payload_display.setFont(QFont("Monospace"))

        self.history_title = QLabel("History")
        self.history_tree = QTreeWidget()
        self.history_tree.setRootIsDecorated(False)
        self.history_tree.setHeaderLabels(["Time", "QoS", "Value"])
        self.history_tree.header().setSectionResizeMode(QHeaderView.ResizeToContents)
        self.history_tree.header().setStretchLastSection(True)

        layout.addWidget(self.payload_title)
        layout.addWidget(self.payload_display, 1)
        layout.addWidget(self.history_title)
        layout.addWidget(self.history_tree, 2)
        widget.setLayout(layout)
        return widget

    def refresh(self):
        frame = self.app.draw()

        status = self.app.connection_status
        if frame.error:
            # History was busy, keep the last drawn frame
            self.status_label.setText(f"Error: {frame.error}")
            return
        self.status_label.setText(status or "")

        selected = self.app.selected_topic
        self.selected_label.setText(f"Selected Topic: {selected}" if selected else "")

        self.load_topic_list(frame)
        self.load_details(frame.details)

    def load_topic_list(self, frame):
        self.overview_title.setText(f"Topics ({frame.topic_count})")

        scroll_bar = self.topic_list.verticalScrollBar()
        scroll_position = scroll_bar.value()

        self.topic_list.blockSignals(True)

        # Update the rows in place, a clear() would reset the scroll position on every frame
        labels = [row.label for row in frame.rows]
        while self.topic_list.count() > len(labels):
            self.topic_list.takeItem(self.topic_list.count() - 1)
        for index, label in enumerate(labels):
            item = self.topic_list.item(index)
            if item is None:
                self.topic_list.addItem(QListWidgetItem(label))
            elif item.text() != label:
                item.setText(label)

        scroll_bar.setValue(scroll_position)

        # Only a changed selection scrolls the list to it
        selected_row = frame.selected_index if frame.selected_index is not None else -1
        if self.topic_list.currentRow() != selected_row:
            self.topic_list.setCurrentRow(selected_row)
        self.topic_list.blockSignals(False)

    def load_details(self, details):
        key = details.key if details is not None else None
        if key == self._details_key:
            return
        self._details_key = key

        self.history_tree.clear()
        if details is None:
            self.payload_title.setText("Payload")
            self.payload_display.setPlainText("")
            self.history_title.setText("History")
            return

        self.payload_title.setText(f"Payload (Bytes: {details.payload_size})")
        self.payload_display.setPlainText(details.payload)

        self.history_title.setText(f"History ({details.count} messages)")
        for message in details.entries:
            qos = f"{message.qos} (retained)" if message.retain else str(message.qos)
            item = QTreeWidgetItem([
                message.received_at.strftime("%H:%M:%S.%f")[:-3],
                qos,
                payload_preview(message.payload)
            ])
            self.history_tree.addTopLevelItem(item)

    def closeEvent(self, event):
        self.timer.stop()
        super().closeEvent(event)
