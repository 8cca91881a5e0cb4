from dgraph import graph as dgraph_graph
from dgraph import layers

# Two inputs, a hidden layer of 2 sigmoids and a single sigmoid output. The
# biases of the layers play the role of the constant 1 input.
HIDDEN_WEIGHTS = [[-0.2, 0.2, 0.1], [0.3, -0.2, 0.1]]
OUTPUT_WEIGHTS = [[1.0, 1.0, 1.0]]

training_inputs = [[0.0, 0.0], [1.0, 0.0], [0.0, 1.0], [1.0, 1.0]]
training_outputs = [0.0, 1.0, 1.0, 0.0]


def build(hidden_weights=HIDDEN_WEIGHTS, output_weights=OUTPUT_WEIGHTS):
    graph = dgraph_graph.Graph("xor")

    inputs = layers.NodeSet(2, prefix="x")
    graph.add_input_nodes(inputs.get_inputs())

    hidden = layers.Layer(inputs.get_nodes(0, 2), 2, name="hidden")
    for i, row in enumerate(hidden_weights):
        hidden.set_weights(i, row)

    output = layers.Layer(hidden.get_output_nodes(), 1, name="output")
    for i, row in enumerate(output_weights):
        output.set_weights(i, row)

    graph.add_param_nodes(hidden.get_weight_nodes())
    graph.add_param_nodes(output.get_weight_nodes())
    graph.set_outputs(output.get_output_nodes())
    return graph
